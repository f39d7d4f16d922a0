"""
Flask Application Entry Point
Uses the application factory pattern from tracking_pkg

Loaded by passenger_wsgi.py, which expects either an 'app' or an
'application' variable; both are provided.
"""
import os
import sys
import traceback

backend_dir = os.path.dirname(os.path.abspath(__file__))

# Passenger may start us from another working directory
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

try:
    os.chdir(backend_dir)
except OSError:
    pass

app = None
application = None

try:
    from tracking_pkg import create_app

    app = create_app()
    application = app

except Exception as e:
    error_msg = f"Failed to create Flask application: {e}\n\n{traceback.format_exc()}"
    print(error_msg, file=sys.stderr)

    def error_application(environ, start_response):
        start_response('500 Internal Server Error', [('Content-Type', 'text/plain')])
        return [b"Order tracking service failed to start"]

    application = error_application
    app = error_application

# Only for local development (ignored by Passenger)
if __name__ == "__main__":
    if app and hasattr(app, 'run'):
        app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)),
                debug=os.environ.get("ENV") == "development")
    else:
        print("Error: Flask application could not be initialized", file=sys.stderr)
        sys.exit(1)
