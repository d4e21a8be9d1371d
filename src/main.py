"""
Retail Intelligence API

ASGI entry point: ``uvicorn src.main:app`` or ``gunicorn src.main:app -c gunicorn.conf.py``.
"""

from src.serving.api import create_api_app

app = create_api_app()


if __name__ == "__main__":
    import uvicorn
    from src.config import get_settings
    
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
