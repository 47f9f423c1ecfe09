import logging
import asyncio
from typing import Any, Callable, Dict, List, Optional
from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import firestore
from api.config import Settings
from lib.error_handler import NotFoundError, RemoteServiceError

logger = logging.getLogger(__name__)

def create_firestore_client(settings: Settings) -> firestore.Client:
    return firestore.Client(
        project=settings.google_cloud_project or None,
        database=settings.firestore_database
    )

class SessionStore:
    """Session records keyed by user/channel id in a Firestore collection"""

    def __init__(self, firestore_client, collection: str = 'sessions'):
        self.db = firestore_client
        self.collection = collection
        logger.info(f"Session store initialized on collection: {collection}")

    def _ref(self, user_id: str):
        return self.db.collection(self.collection).document(user_id)

    async def _run(self, action: str, call: Callable[[], Any]) -> Any:
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, call)
        except NotFound:
            raise NotFoundError(f"Session not found while trying to {action}")
        except GoogleAPIError as e:
            logger.error(f"Failed to {action}: {str(e)}")
            raise RemoteServiceError(f"Failed to {action}")

    async def create_or_update_session(self, user_id: str, session_data: Dict[str, Any]) -> Dict[str, Any]:
        """Merge fields into the record, creating it when absent"""
        document = {
            **session_data,
            'updatedAt': firestore.SERVER_TIMESTAMP,
            'createdAt': firestore.SERVER_TIMESTAMP,
        }
        await self._run('create or update session', lambda: self._ref(user_id).set(document, merge=True, retry=None))
        return {'success': True, 'sessionId': user_id}

    async def get_session(self, user_id: str) -> Optional[Dict[str, Any]]:
        snapshot = await self._run('get session', lambda: self._ref(user_id).get(retry=None))
        if snapshot.exists:
            return snapshot.to_dict()
        return None

    async def update_session(self, user_id: str, update_data: Dict[str, Any]) -> Dict[str, Any]:
        """Update fields on an existing record; raises NotFoundError when absent"""
        document = {**update_data, 'updatedAt': firestore.SERVER_TIMESTAMP}
        await self._run('update session', lambda: self._ref(user_id).update(document, retry=None))
        return {'success': True, 'sessionId': user_id}

    async def delete_session(self, user_id: str) -> Dict[str, Any]:
        await self._run('delete session', lambda: self._ref(user_id).delete(retry=None))
        return {'success': True, 'sessionId': user_id}

    async def session_exists(self, user_id: str) -> bool:
        snapshot = await self._run('check session existence', lambda: self._ref(user_id).get(retry=None))
        return snapshot.exists

    async def get_all_sessions(self, limit: int = 100) -> List[Dict[str, Any]]:
        snapshots = await self._run(
            'get all sessions',
            lambda: list(self.db.collection(self.collection).limit(limit).stream(retry=None))
        )
        return [{'id': snapshot.id, **snapshot.to_dict()} for snapshot in snapshots]

    async def increment_error_count(self, user_id: str) -> Dict[str, Any]:
        await self._run('increment error count', lambda: self._ref(user_id).update({
            'errorCount': firestore.Increment(1),
            'updatedAt': firestore.SERVER_TIMESTAMP,
        }, retry=None))
        return {'success': True, 'sessionId': user_id}

    async def reset_error_count(self, user_id: str) -> Dict[str, Any]:
        await self._run('reset error count', lambda: self._ref(user_id).update({
            'errorCount': 0,
            'updatedAt': firestore.SERVER_TIMESTAMP,
        }, retry=None))
        return {'success': True, 'sessionId': user_id}
