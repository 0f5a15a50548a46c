"""HTTP client for the OneView project API."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import requests

from src.utils.logging import get_logger
from src.utils.settings import Settings, load_settings

LOGGER = get_logger(__name__)


class ApiError(Exception):
    """Non-2xx response or transport failure; ``status`` is None when no response arrived."""

    def __init__(self, status: int | None, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        return self.message if self.status is None else f'{self.status}: {self.message}'


def _segment(value: Any) -> str:
    return quote(str(value), safe='')


def encode_field_name(field_name: str) -> str:
    """Path-encode a field name; names with ``/`` are encoded twice so the server keeps them whole."""
    encoded = _segment(field_name)
    return _segment(encoded) if '/' in field_name else encoded


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ('message', 'error'):
            if body.get(key):
                return str(body[key])
    return response.reason or f'HTTP {response.status_code}'


class OneViewApiClient:
    def __init__(self, settings: Settings | None = None, session: requests.Session | None = None) -> None:
        self.settings = settings or load_settings()
        self.session = session or requests.Session()

    def _url(self, *segments: str) -> str:
        return '/'.join([self.settings.api_base_url, *segments])

    def _request(self, method: str, *segments: str, payload: dict[str, Any] | None = None) -> Any:
        url = self._url(*segments)
        LOGGER.debug('%s %s', method, url)
        try:
            response = self.session.request(method, url, json=payload, timeout=self.settings.request_timeout)
        except requests.exceptions.RequestException as exc:
            raise ApiError(None, f'Request to {url} failed: {exc}') from exc
        if not response.ok:
            raise ApiError(response.status_code, _error_message(response))
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(response.status_code, f'Invalid JSON from {url}') from exc

    def get_project_data(self) -> list[dict[str, Any]]:
        return self._request('GET', 'getProjectData')

    def get_project_by_id(self, project_id: Any) -> dict[str, Any]:
        return self._request('GET', 'getProjectById', _segment(project_id))

    def get_project_module(self, module_name: str, project_id: Any) -> Any:
        return self._request('GET', 'getProjectModule', _segment(module_name), _segment(project_id))

    def get_finance_submodule(self, submodule_name: str, project_id: Any) -> dict[str, Any]:
        return self._request('GET', 'getFinanceSubmodule', _segment(submodule_name), _segment(project_id))

    def get_field_metadata(self, table_name: str) -> list[dict[str, Any]]:
        return self._request('GET', 'getFieldMetadata', _segment(table_name))

    def get_data_points(self, module_name: str) -> list[dict[str, Any]]:
        return self._request('GET', 'getDataPoints', _segment(module_name))

    def get_dropdown_options(self, table_name: str, field_name: str) -> dict[str, Any]:
        return self._request('GET', 'getDropdownOptions', _segment(table_name), encode_field_name(field_name))

    def update_project_data(self, table_name: str, project_id: Any, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request('PUT', 'updateProjectData', _segment(table_name), _segment(project_id), payload=payload)

    def update_finance_submodule(self, submodule_name: str, project_id: Any, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request(
            'PUT',
            'updateFinanceSubmodule',
            _segment(submodule_name),
            _segment(project_id),
            payload=payload,
        )
