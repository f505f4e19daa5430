"""
WSGI entry point — used by gunicorn (`gunicorn wsgi:app`).

Background runs need a worker on the same Redis: `rq worker --url $REDIS_URL`.
"""
from leadgen import create_app

app = create_app()

if __name__ == '__main__':
    import os
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 8080)))
