"""
FastAPI for the chat relay.
Provides endpoints for chat turns, chat sessions and message management.
"""
import sys
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from chat_relay.ai_service import GeminiClient
from chat_relay.config import Settings, get_settings
from chat_relay.database import create_db_engine, create_session_factory, get_db, init_db
from chat_relay.errors import ChatRelayError, InternalError, StorageError
from chat_relay.models import TITLE_COLUMN_LENGTH
from chat_relay.orchestrator import ChatOrchestrator
from chat_relay.store import ChatStore

logger = logging.getLogger(__name__)


# Pydantic models for request/response
class ChatRequest(BaseModel):
    # Fields are optional so missing ones surface as a 400 from the orchestrator
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId")
    message: Optional[str] = None
    chat_id: Optional[str] = Field(None, alias="chatId")
    title: Optional[str] = Field(None, max_length=TITLE_COLUMN_LENGTH)


class ChatResponse(BaseModel):
    reply: str
    chatId: str
    contextUsed: bool


def get_orchestrator(request: Request, db: Session = Depends(get_db)) -> ChatOrchestrator:
    """Build the per-request orchestrator around this request's database session."""
    return ChatOrchestrator(
        store=ChatStore(db),
        generator=request.app.state.generator,
        settings=request.app.state.settings,
    )


def create_app(
    settings: Optional[Settings] = None,
    generator: Optional[GeminiClient] = None,
    engine=None,
) -> FastAPI:
    """
    Create the API application.

    Args:
        settings: Process configuration (defaults to the environment)
        generator: Generation client (defaults to a GeminiClient built from settings)
        engine: SQLAlchemy engine (defaults to one built from settings.database_url)
    """
    settings = settings or get_settings()
    engine = engine if engine is not None else create_db_engine(settings.database_url)

    app = FastAPI(title="Chat Relay API")

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Initialize database
    init_db(engine)

    app.state.settings = settings
    app.state.session_factory = create_session_factory(engine)
    app.state.generator = generator or GeminiClient(settings)

    @app.exception_handler(ChatRelayError)
    async def chat_relay_error_handler(request: Request, exc: ChatRelayError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        )

    @app.post('/chat', response_model=ChatResponse)
    def chat(chat_request: ChatRequest,
             orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
        """
        Process a chat message and generate an AI response.

        Request body:
            {
                "userId": str,
                "message": str,
                "chatId": str (optional),
                "title": str (optional)
            }
        """
        try:
            result = orchestrator.handle_chat_turn(
                chat_request.user_id,
                chat_request.message,
                chat_id=chat_request.chat_id,
                title=chat_request.title,
            )
            return result.to_dict()
        except ChatRelayError as e:
            logger.error(f"Chatbot error: {e}")
            raise
        except Exception as e:
            logger.exception(f"Unexpected chatbot error: {e}")
            raise InternalError(str(e)) from e

    @app.get('/chat-sessions/{user_id}')
    def get_chat_sessions(user_id: str,
                          orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
        """Get all chat sessions of a user, most recently updated first."""
        try:
            return [session.to_dict() for session in orchestrator.list_sessions(user_id)]
        except StorageError as e:
            raise StorageError(e.message, public_message="Failed to fetch chat sessions") from e
        except Exception as e:
            logger.exception(f"Error fetching chat sessions: {e}")
            raise InternalError(str(e), public_message="Failed to fetch chat sessions") from e

    @app.get('/chat-messages/{chat_id}')
    def get_chat_messages(chat_id: str,
                          orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
        """Get all messages of a chat session in chronological order."""
        try:
            return [msg.to_dict() for msg in orchestrator.list_messages(chat_id)]
        except StorageError as e:
            raise StorageError(e.message, public_message="Failed to fetch chat messages") from e
        except Exception as e:
            logger.exception(f"Error fetching chat messages: {e}")
            raise InternalError(str(e), public_message="Failed to fetch chat messages") from e

    @app.delete('/chat-sessions/{chat_id}')
    def delete_chat_session(chat_id: str,
                            orchestrator: ChatOrchestrator = Depends(get_orchestrator)):
        """Delete a chat session and all its messages."""
        try:
            orchestrator.delete_session(chat_id)
        except StorageError as e:
            raise StorageError(e.message, public_message="Failed to delete chat session") from e
        except Exception as e:
            logger.exception(f"Error deleting chat session: {e}")
            raise InternalError(str(e), public_message="Failed to delete chat session") from e

        return {'message': 'Chat session deleted successfully'}

    @app.get('/health')
    def health():
        return {
            'status': 'ok',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'generationBackendConfigured': app.state.settings.gemini_configured,
        }

    @app.get('/test-gemini')
    def test_gemini():
        """Send a short test prompt to Gemini."""
        try:
            working = app.state.generator.ping()
        except Exception as e:
            logger.exception(f"Gemini API test failed: {e}")
            raise InternalError(str(e), public_message="Gemini API test failed") from e

        return {
            'geminiApiWorking': working,
            'apiKeyConfigured': app.state.settings.gemini_configured,
        }

    return app


def main():
    """Run the API with uvicorn. Exits non-zero when GEMINI_API_KEY is missing."""
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    settings = get_settings()

    if not settings.gemini_configured:
        logger.error("GEMINI_API_KEY is not set in environment variables")
        logger.info("Get your API key from: https://makersuite.google.com/app/apikey")
        sys.exit(1)

    app = create_app(settings)
    if settings.ping_on_startup:
        app.state.generator.ping()

    logger.info(f"Chatbot backend running at http://localhost:{settings.port}")
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == '__main__':
    main()
