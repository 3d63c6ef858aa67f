from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

"""Application entry point.

Creates the Flask app (which also prepares the Kuzu schema) and, when run
directly, hands the process over to Gunicorn.
"""

from app import create_app

# This app is intended to be run via Gunicorn only
app = create_app()
if __name__ == '__main__':
    import os
    import sys

    port = os.environ.get('PORT', '3000')
    command = [
        "gunicorn",
        "-w", os.environ.get('GUNICORN_WORKERS', '1'),
        "-b", f"0.0.0.0:{port}",
        "run:app"
    ]

    print(f"🚀 Launching Gunicorn with command: {' '.join(command)}")
    try:
        os.execvp(command[0], command)
    except FileNotFoundError:
        print("Error: 'gunicorn' command not found.", file=sys.stderr)
        print("Please install Gunicorn: pip install gunicorn", file=sys.stderr)
        sys.exit(1)
