bind = "unix:/var/www/contact-desk/gunicorn.sock"
workers = 4
worker_class = "sync"
worker_tmp_dir = "/dev/shm"
max_requests = 1000
max_requests_jitter = 100
# Must exceed RECAPTCHA_TIMEOUT + EMAIL_TIMEOUT
timeout = 90
keepalive = 5

# Logging
accesslog = "/var/log/contact-desk/access.log"
errorlog = "/var/log/contact-desk/error.log"
loglevel = "info"
access_log_format = '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s "%(f)s" "%(a)s" %(D)s'

# Process naming
proc_name = "contact-desk"

# Server mechanics
daemon = False
pidfile = "/var/run/contact-desk/gunicorn.pid"
umask = 0o007
