# Entry point for the BookingHub realtime service

import eventlet
eventlet.monkey_patch()

from bookinghub import create_app  # noqa: E402
from bookinghub.extensions import socketio  # noqa: E402

app = create_app()

if __name__ == '__main__':
    app.logger.info("[SERVER STARTUP] Starting BookingHub realtime service")
    app.logger.info("[SERVER CONFIG] Socket.IO running on %s:%s", app.config['HOST'], app.config['PORT'])
    socketio.run(app, host=app.config['HOST'], port=app.config['PORT'], debug=False)
