"""Observability helpers (Sentry init & common scrubbing).

Centralises Sentry initialisation so configuration does not drift.
Keeps initialisation a no-op when no DSN is configured, and every
helper is best-effort: instrumentation must never break a request.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from expense_tracker.core.config import settings


def _before_send(event: Dict[str, Any], hint: Dict[str, Any] | None = None):
	"""Scrub obvious PII / secrets before sending to Sentry.

	- Drop Authorization & Cookie headers
	- Remove request data/body (keep method + URL); uploads are receipts
	"""
	try:
		req = event.get("request") or {}
		headers = req.get("headers") or {}
		for k in list(headers.keys()):
			lk = k.lower()
			if lk in ("authorization", "cookie", "set-cookie", "x-api-key"):
				headers.pop(k, None)
		if "data" in req:
			req.pop("data", None)
		event["request"] = req
	except Exception:  # best effort
		pass
	return event


def sentry_enabled() -> bool:
	return bool(settings.SENTRY_DSN)


def init_sentry(service: str) -> bool:
	"""Initialise Sentry once for a given process.

	Returns True if Sentry was initialised; False otherwise.
	"""
	if not sentry_enabled():
		return False
	if getattr(init_sentry, "_done", False):  # prevent duplicate init in same process
		return True
	sentry_sdk.init(
		dsn=settings.SENTRY_DSN,
		integrations=[FastApiIntegration(), SqlalchemyIntegration()],
		traces_sample_rate=float(settings.SENTRY_TRACES_SAMPLE_RATE or 0),
		environment=settings.ENVIRONMENT,
		release=settings.SENTRY_RELEASE,
		before_send=_before_send,
	)
	sentry_sdk.set_tag("service", service)
	init_sentry._done = True  # type: ignore[attr-defined]
	return True


def sentry_set_tags(tags: Dict[str, Any]) -> None:
	"""Best-effort: set tags on the current scope (strings only)."""
	if not sentry_enabled():
		return
	try:
		for k, v in (tags or {}).items():
			# Avoid PII; coerce to short strings
			sentry_sdk.set_tag(str(k), str(v)[:128] if v is not None else "")
	except Exception:
		return


def sentry_breadcrumb(category: str, message: str, level: str = "info", data: Optional[Dict[str, Any]] = None) -> None:
	"""Best-effort: add a breadcrumb for important lifecycle steps."""
	if not sentry_enabled():
		return
	try:
		sentry_sdk.add_breadcrumb(
			category=category,
			message=message,
			level=level,
			data=data or {},
		)
	except Exception:
		return


def sentry_capture(exc: BaseException) -> None:
	"""Best-effort exception capture."""
	if not sentry_enabled():
		return
	try:
		sentry_sdk.capture_exception(exc)
	except Exception:
		return


__all__ = ["init_sentry", "sentry_set_tags", "sentry_breadcrumb", "sentry_capture", "sentry_enabled"]
