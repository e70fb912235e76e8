"""HTTP client for the authoritative academy backend.

Errors are classified here so the service layer can decide on fallback:
anything that means "could not get a usable answer" becomes
RemoteUnavailableError; a clear refusal from a reachable backend becomes the
matching domain error.
"""

import logging
from datetime import date
from typing import Any, Iterable, Optional, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from .constants import DOMAIN_REJECTION_STATUSES
from .errors import (
    AccessDeniedError,
    AttendanceValidationError,
    DomainRejectionError,
    DuplicateSessionError,
    PlayerNotFoundError,
    RemoteUnavailableError,
    SessionNotFoundError,
)
from .schemas import (
    AttendanceEntry,
    AttendanceHistoryEntry,
    AttendanceRecord,
    Player,
    PlayerCreate,
    Session,
)

T = TypeVar('T', bound=BaseModel)
logger = logging.getLogger('academy.gateway')


class RemoteGateway:
    """Thin request/response wrapper around the backend REST API."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: Optional[float] = 10.0,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self) -> dict[str, str]:
        headers = {'Content-Type': 'application/json', 'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def _rejection(
        self, status: int, message: str, not_found: type[DomainRejectionError]
    ) -> DomainRejectionError:
        if status == 403:
            return AccessDeniedError(message)
        if status == 404:
            return not_found(message)
        if status == 409:
            return DuplicateSessionError(message)
        return AttendanceValidationError(message)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        payload: Any = None,
        not_found: type[DomainRejectionError] = SessionNotFoundError,
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Path below the base URL
            params: Query parameters (None values are dropped)
            payload: JSON body
            not_found: Domain error raised for a 404

        Returns:
            Decoded JSON, or None for an empty body

        Raises:
            RemoteUnavailableError: Connection problem, timeout, unexpected status or bad JSON
            DomainRejectionError: 400/403/404/409/422 from the backend
        """
        url = f'{self.base_url}/{path.lstrip("/")}'
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        logger.debug(f'{method} {url}')
        try:
            response = self.http.request(
                method,
                url,
                headers=self._headers(),
                params=params or None,
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteUnavailableError(f'{method} {url} failed: {e}') from e

        if response.status_code in DOMAIN_REJECTION_STATUSES:
            message = _error_message(response)
            logger.info(f'{method} {url} rejected ({response.status_code}): {message}')
            raise self._rejection(response.status_code, message, not_found)

        if not response.ok:
            raise RemoteUnavailableError(
                f'{method} {url} returned {response.status_code}: {_error_message(response)}'
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RemoteUnavailableError(f'{method} {url} returned malformed JSON') from e

    # Sessions

    def get_todays_sessions(self, age_group: str) -> list[Session]:
        data = self._request('GET', f'sessions/today/{age_group}')
        return _parse_list(Session, data)

    def create_session(
        self, session_date: date, time_slot: str, age_group: str, coach_id: Optional[str] = None
    ) -> Session:
        payload = {'date': session_date.isoformat(), 'timeSlot': time_slot, 'ageGroup': age_group}
        if coach_id:
            payload['coachId'] = coach_id
        data = self._request('POST', 'sessions/create', payload=payload)
        return _parse_one(Session, data)

    def get_session_history(self, age_group: str, limit: int = 50, offset: int = 0) -> list[Session]:
        data = self._request(
            'GET', f'sessions/history/{age_group}', params={'limit': limit, 'offset': offset}
        )
        return _parse_list(Session, data)

    def get_session_attendance(self, session_id: str) -> list[AttendanceRecord]:
        data = self._request('GET', f'sessions/{session_id}/attendance')
        return _parse_list(AttendanceRecord, data)

    def set_group_photo(self, session_id: str, photo_ref: str) -> Optional[Session]:
        data = self._request('POST', f'attendance/photo/{session_id}', payload={'photoRef': photo_ref})
        if isinstance(data, dict) and 'id' in data:
            return _parse_one(Session, data)
        return None

    # Attendance

    def mark_attendance(
        self, session_id: str, entries: Iterable[AttendanceEntry]
    ) -> list[AttendanceRecord]:
        payload = {
            'sessionId': session_id,
            'attendanceRecords': [e.to_json() for e in entries],
        }
        data = self._request('POST', 'attendance/mark', payload=payload)
        return _parse_list(AttendanceRecord, data or [])

    def get_attendance_history(
        self,
        age_group: str,
        player_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AttendanceHistoryEntry]:
        params = {
            'playerId': player_id,
            'startDate': start_date.isoformat() if start_date else None,
            'endDate': end_date.isoformat() if end_date else None,
            'limit': limit,
            'offset': offset,
        }
        data = self._request('GET', f'attendance/history/{age_group}', params=params)
        return _parse_list(AttendanceHistoryEntry, data)

    # Players

    def get_players(self, age_group: str) -> list[Player]:
        data = self._request('GET', f'players/{age_group}', not_found=PlayerNotFoundError)
        return _parse_list(Player, data)

    def create_player(self, player: PlayerCreate) -> Player:
        data = self._request('POST', 'players', payload=player.to_json(), not_found=PlayerNotFoundError)
        return _parse_one(Player, data)

    def update_player(self, player_id: str, fields: dict[str, Any]) -> Player:
        data = self._request('PUT', f'players/{player_id}', payload=fields, not_found=PlayerNotFoundError)
        return _parse_one(Player, data)

    def delete_player(self, player_id: str) -> None:
        self._request('DELETE', f'players/{player_id}', not_found=PlayerNotFoundError)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason or ''
    if isinstance(body, dict) and body.get('error'):
        return str(body['error'])
    return response.reason or ''


def _parse_one(model: type[T], data: Any) -> T:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RemoteUnavailableError(f'Unexpected {model.__name__} payload: {e}') from e


def _parse_list(model: type[T], data: Any) -> list[T]:
    if not isinstance(data, list):
        raise RemoteUnavailableError(f'Expected a list of {model.__name__}, got {type(data).__name__}')
    return [_parse_one(model, item) for item in data]
