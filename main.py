import uvicorn
from dotenv import load_dotenv

# .env must be loaded before settings are first read
load_dotenv()

from src.app import create_app
from src.infra.config.settings import settings

app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
