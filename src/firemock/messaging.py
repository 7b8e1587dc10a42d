"""
Mock Messaging Service
Stands in for the admin messaging client: send, send_all, send_multicast
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .clock import Clock
from .config import MockSettings
from .dispatch import DeferredService, PendingResult
from .errors import require
from .ids import new_id
from .models import BatchResponse, SendResponse

logger = logging.getLogger(__name__)


class MockMessaging(DeferredService):
    """
    Deferred messaging mock

    Every send settles on flush. By default send resolves with a fresh
    message id and batch sends report every message as delivered.
    """

    def __init__(self, clock: Optional[Clock] = None, settings: Optional[MockSettings] = None):
        self._setup_dispatcher(clock, settings)
        logger.info("MockMessaging initialized")

    def send(self, message: Dict[str, Any], dry_run: bool = False) -> PendingResult:
        require(message is not None, 'message must not be None')
        return self._defer('send', [message, dry_run], self._new_message_id)

    def send_all(self, messages: List[Dict[str, Any]], dry_run: bool = False) -> PendingResult:
        require(isinstance(messages, list), 'messages must be a list')
        return self._defer(
            'send_all',
            [messages, dry_run],
            lambda: self._batch_response(messages),
        )

    def send_multicast(self, multicast_message: Dict[str, Any], dry_run: bool = False) -> PendingResult:
        require(multicast_message is not None, 'multicast_message must not be None')
        require(
            isinstance(multicast_message, dict) and isinstance(multicast_message.get('tokens'), list),
            'multicast_message.tokens must be a list',
        )
        return self._defer(
            'send_multicast',
            [multicast_message, dry_run],
            lambda: self._batch_response(multicast_message['tokens']),
        )

    def _new_message_id(self) -> str:
        return f"{self.settings.message_id_prefix}{new_id()}"

    def _batch_response(self, targets: Sequence[Any]) -> BatchResponse:
        responses = [
            SendResponse(success=True, message_id=self._new_message_id())
            for _ in targets
        ]
        return BatchResponse(
            responses=responses,
            success_count=len(responses),
            failure_count=0,
        )
