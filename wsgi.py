# top of the gunicorn entrypoint, before anything imports sockets
import gevent.monkey
gevent.monkey.patch_all()

from app import create_app

# ----------------------
# Create app instance
# ----------------------
app = create_app()
