from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from booking_api.config import settings

def setup_cors(app: FastAPI):
    """Configure CORS for the application"""
    # Frontend first, then the configured dev origins, without duplicates
    origins = list(dict.fromkeys([settings.frontend_url, *settings.cors_origins]))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["*"]
    )
