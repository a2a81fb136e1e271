"""Tests for Celery tasks"""
import pytest
from unittest.mock import MagicMock, Mock, patch

from app.tasks import reconcile_pending_orders


class TestReconcileTask:
    def test_runs_sweep_and_closes_session(self):
        db = MagicMock()
        summary = {"checked": 1, "completed": 1, "failed": 0, "unchanged": 0, "errors": 0}

        with patch("app.tasks.SessionLocal", return_value=db), \
                patch("app.tasks.settings") as mock_settings, \
                patch("app.services.orders.reconcile_pending_orders", return_value=summary) as sweep:
            mock_settings.reconcile_pending_enabled = True
            result = reconcile_pending_orders.run()

        assert result == summary
        sweep.assert_called_once_with(db)
        db.close.assert_called_once()

    def test_disabled_sweep_does_nothing(self):
        with patch("app.tasks.SessionLocal") as session_factory, \
                patch("app.tasks.settings") as mock_settings:
            mock_settings.reconcile_pending_enabled = False
            result = reconcile_pending_orders.run()

        assert result == {"status": "disabled"}
        session_factory.assert_not_called()

    def test_failure_rolls_back_and_reraises(self):
        db = MagicMock()

        with patch("app.tasks.SessionLocal", return_value=db), \
                patch("app.tasks.settings") as mock_settings, \
                patch("app.services.orders.reconcile_pending_orders", side_effect=RuntimeError("db down")):
            mock_settings.reconcile_pending_enabled = True
            with pytest.raises(RuntimeError):
                reconcile_pending_orders.run()

        db.rollback.assert_called_once()
        db.close.assert_called_once()


class TestBeatSchedule:
    def test_reconcile_is_scheduled(self):
        from app.celery_app import celery_app
        schedule = celery_app.conf.beat_schedule
        assert schedule["reconcile-pending-orders"]["task"] == "reconcile_pending_orders"

