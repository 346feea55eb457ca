"""Tests for YAML configuration loading and schema validation."""

import pytest
import yaml

from billing_config import get_active_config
from billing_config.loader import compute_checksum, parse_configuration
from billing_config.schema import (
    BillingConfigurationSet,
    InvoicePolicy,
    ReceiptPolicy,
    ReminderOffset,
    ReminderPolicy,
    TrackingPolicy,
)


def _write(tmp_path, data, name="billing.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


class TestShippedDefaults:

    def test_default_set_loads(self):
        config = get_active_config()

        assert config.config_id == "agency-default"
        assert config.version == 1
        assert config.tracking == TrackingPolicy()
        assert config.invoices.require_due_date is True
        assert [(o.days_before, o.urgency) for o in config.reminders.offsets] == [
            (7, "notice"),
            (3, "warning"),
            (1, "urgent"),
        ]
        assert config.receipts.dispatch_on_approval is True
        assert len(config.checksum) == 64

    def test_matches_builtin_policies(self):
        config = get_active_config()
        builtin = BillingConfigurationSet.with_defaults()
        assert config.tracking == builtin.tracking
        assert config.invoices == builtin.invoices
        assert config.reminders == builtin.reminders
        assert config.receipts == builtin.receipts

    def test_load_is_logged(self, captured_logs):
        get_active_config()
        loaded = [r for r in captured_logs() if r["message"] == "billing_config_loaded"]
        assert loaded[0]["config_id"] == "agency-default"
        assert loaded[0]["reminder_offsets"] == [7, 3, 1]


class TestCustomFiles:

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = _write(tmp_path, {
            "config_id": "studio",
            "version": 3,
            "tracking": {"prefix": "WEB", "suffix_length": 6},
            "invoices": {"require_due_date": False},
        })
        config = get_active_config(path)

        assert config.tracking == TrackingPolicy(prefix="WEB", suffix_length=6, max_attempts=8)
        assert config.invoices == InvoicePolicy(require_due_date=False)
        assert config.reminders == ReminderPolicy()
        assert config.receipts == ReceiptPolicy()

    def test_empty_offsets_disable_reminders(self, tmp_path):
        path = _write(tmp_path, {"config_id": "quiet", "version": 1, "reminders": {"offsets": []}})
        assert get_active_config(path).reminders.offsets == ()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_missing_identity(self, tmp_path):
        path = _write(tmp_path, {"version": 1})
        with pytest.raises(KeyError):
            get_active_config(path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("config_id: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            get_active_config(path)


class TestSchemaValidation:

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"prefix": "trk"},
            {"prefix": "TR-K"},
            {"suffix_length": 3},
            {"suffix_length": 13},
            {"max_attempts": 0},
        ],
    )
    def test_tracking_policy(self, kwargs):
        with pytest.raises(ValueError):
            TrackingPolicy(**kwargs)

    def test_reminder_offsets(self):
        with pytest.raises(ValueError):
            ReminderOffset(-1, "notice")
        with pytest.raises(ValueError):
            ReminderOffset(3, "panic")
        with pytest.raises(ValueError):
            ReminderPolicy(offsets=(ReminderOffset(3, "notice"), ReminderOffset(3, "urgent")))

    def test_urgency_lookup(self):
        policy = ReminderPolicy()
        assert policy.urgency_for(3) == "warning"
        assert policy.urgency_for(2) is None

    @pytest.mark.parametrize("kwargs", [{"batch_size": 0}, {"max_attempts": 0}])
    def test_receipt_policy(self, kwargs):
        with pytest.raises(ValueError):
            ReceiptPolicy(**kwargs)

    def test_invoice_policy(self):
        with pytest.raises(ValueError):
            InvoicePolicy(min_name_length=0)

    def test_bad_value_in_file(self, tmp_path):
        path = _write(tmp_path, {"config_id": "x", "version": 1, "receipts": {"batch_size": 0}})
        with pytest.raises(ValueError):
            get_active_config(path)


class TestChecksum:

    def test_key_order_does_not_matter(self):
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})

    def test_changes_with_content(self):
        base = {"config_id": "x", "version": 1}
        assert parse_configuration(base).checksum != parse_configuration({**base, "version": 2}).checksum
