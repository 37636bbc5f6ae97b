"""
Property-based tests for Audit Logger module.

Uses Hypothesis for property-based testing of output formats, audit signing,
masking of key material and level filtering.
"""

import json
from io import StringIO

from hypothesis import given, settings
from hypothesis import strategies as st

from vpn_directory.audit_logger import AuditLogger, LogEntry
from vpn_directory.config import LoggingConfig
from vpn_directory.enums import LogLevel
from vpn_directory.exceptions import SnapshotError


# Strategies for generating valid test data

@st.composite
def log_level_strategy(draw) -> LogLevel:
    """Generate valid LogLevel values."""
    return draw(st.sampled_from(list(LogLevel)))


@st.composite
def component_name_strategy(draw) -> str:
    """Generate valid component names."""
    return draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-"),
        min_size=1,
        max_size=50,
    ))


@st.composite
def message_strategy(draw) -> str:
    """Generate valid log messages."""
    return draw(st.text(
        alphabet=st.characters(
            whitelist_categories=('L', 'N', 'P', 'S', 'Z'),
            blacklist_characters='\x00\n\r',
        ),
        min_size=1,
        max_size=200,
    ))


@st.composite
def non_sensitive_key_strategy(draw) -> str:
    """Generate keys that are NOT sensitive."""
    base = draw(st.sampled_from([
        'gateway', 'hostname', 'city', 'country_code', 'latency_ms', 'port',
        'protocol', 'count', 'issues', 'mtu', 'public_ip', 'load',
    ]))
    suffix = draw(st.sampled_from(['', '_1', '_value', '_prev']))
    return f"{base}{suffix}"


@st.composite
def sensitive_key_strategy(draw) -> str:
    """Generate keys that ARE sensitive."""
    base = draw(st.sampled_from([
        'private_key', 'preshared_key', 'psk', 'password', 'vpn_password',
        'secret', 'token', 'session_token', 'api_key', 'authorization',
        'credentials', 'signing_key',
    ]))

    # Optionally add prefix/suffix
    prefix = draw(st.sampled_from(['', 'wg_', 'user_', 'host_']))
    suffix = draw(st.sampled_from(['', '_value', '_data', '_1']))

    return f"{prefix}{base}{suffix}"


@st.composite
def simple_value_strategy(draw):
    """Generate simple JSON-serializable values."""
    return draw(st.one_of(
        st.text(min_size=0, max_size=50),
        st.integers(min_value=-1000, max_value=1000),
        st.floats(allow_nan=False, allow_infinity=False, min_value=-1000, max_value=1000),
        st.booleans(),
        st.none(),
    ))


@st.composite
def non_sensitive_data_strategy(draw) -> dict:
    """Generate data dictionaries without sensitive keys."""
    num_keys = draw(st.integers(min_value=0, max_value=5))
    data = {}
    for _ in range(num_keys):
        key = draw(non_sensitive_key_strategy())
        value = draw(simple_value_strategy())
        data[key] = value
    return data


@st.composite
def signing_key_strategy(draw) -> str:
    """Generate valid signing keys."""
    return draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"),
        min_size=16,
        max_size=64,
    ))


class TestDualFormatProperty:
    """
    Property-based tests for dual format logging.

    **Feature: vpn-directory, Property 14: Log entries in dual format**
    """

    @given(
        level=log_level_strategy(),
        component=component_name_strategy(),
        message=message_strategy(),
        data=non_sensitive_data_strategy(),
    )
    @settings(max_examples=100, deadline=None)
    def test_dual_format_produces_both_outputs(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: dict,
    ) -> None:
        """
        Property 14: Log entries in dual format.

        *For any* log entry when output_format is "both", the logger SHALL produce
        both a valid JSON string and a human-readable text line.
        """
        output = StringIO()
        logger = AuditLogger(output_format="both", output_stream=output)

        logger.log(level, component, message, data)

        lines = output.getvalue().rstrip('\n').split('\n')

        assert len(lines) == 2, f"Expected 2 lines, got {len(lines)}"

        parsed_json = json.loads(lines[0])
        assert parsed_json["level"] == level.value
        assert parsed_json["component"] == component
        assert parsed_json["message"] == message
        assert "timestamp" in parsed_json

        text_line = lines[1]
        assert level.value.upper() in text_line
        assert component in text_line
        assert message in text_line

    @given(
        level=log_level_strategy(),
        component=component_name_strategy(),
        message=message_strategy(),
    )
    @settings(max_examples=100)
    def test_text_only_format(self, level: LogLevel, component: str, message: str) -> None:
        """
        Property 14b: Text-only format produces one human-readable line.
        """
        output = StringIO()
        logger = AuditLogger(output_format="text", output_stream=output)

        logger.log(level, component, message)

        lines = output.getvalue().rstrip('\n').split('\n')
        assert len(lines) == 1
        assert f"[{component}]" in lines[0]


class TestLevelFilteringProperty:
    """
    Property-based tests for minimum level filtering.

    **Feature: vpn-directory, Property 15: Entries below the minimum level are dropped**
    """

    ORDER = [LogLevel.DEBUG, LogLevel.INFO, LogLevel.WARN, LogLevel.ERROR]

    @given(
        min_level=log_level_strategy(),
        level=log_level_strategy(),
        component=component_name_strategy(),
        message=message_strategy(),
    )
    @settings(max_examples=100)
    def test_entries_below_min_level_dropped(
        self,
        min_level: LogLevel,
        level: LogLevel,
        component: str,
        message: str,
    ) -> None:
        """
        *For any* minimum level, an entry SHALL be emitted iff its level is at
        least the minimum level.
        """
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output, min_level=min_level)

        entry = logger.log(level, component, message)

        emitted = self.ORDER.index(level) >= self.ORDER.index(min_level)
        assert (entry is not None) == emitted
        assert bool(output.getvalue()) == emitted
        assert len(logger.entries) == (1 if emitted else 0)

    def test_from_config(self) -> None:
        output = StringIO()
        logger = AuditLogger.from_config(
            LoggingConfig(level="warn", audit_mode=True, audit_signing_key="k" * 32, output_format="json"),
            output_stream=output,
        )

        assert logger.min_level == LogLevel.WARN
        assert logger.audit_mode
        assert logger.info("Test", "dropped") is None
        assert logger.warn("Test", "kept").signature is not None

    def test_from_config_unknown_level_falls_back_to_info(self) -> None:
        logger = AuditLogger.from_config(LoggingConfig(level="verbose"), output_stream=StringIO())

        assert logger.min_level == LogLevel.INFO
        assert not logger.audit_mode


class TestAuditSigningProperty:
    """
    Property-based tests for audit mode signing.

    **Feature: vpn-directory, Property 16: Audit mode signs log entries**
    """

    @given(
        level=log_level_strategy(),
        component=component_name_strategy(),
        message=message_strategy(),
        data=non_sensitive_data_strategy(),
        signing_key=signing_key_strategy(),
    )
    @settings(max_examples=100)
    def test_audit_mode_signs_entries(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: dict,
        signing_key: str,
    ) -> None:
        """
        Property 16: Audit mode signs log entries.

        *For any* log entry when audit_mode is enabled, the entry SHALL contain
        a signature field that is a valid HMAC of the entry content.
        """
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output)
        logger.enable_audit_mode(signing_key)

        entry = logger.log(level, component, message, data)

        assert entry.signature is not None
        assert len(entry.signature) == 64  # SHA256 hex digest length
        assert logger.verify_signature(entry)

        parsed = json.loads(output.getvalue().strip())
        assert parsed["signature"] == entry.signature

    @given(
        level=log_level_strategy(),
        component=component_name_strategy(),
        message=message_strategy(),
        signing_key=signing_key_strategy(),
    )
    @settings(max_examples=100)
    def test_tampered_entry_fails_verification(
        self,
        level: LogLevel,
        component: str,
        message: str,
        signing_key: str,
    ) -> None:
        """
        Property 16b: Tampered entries fail verification.

        *For any* signed log entry, modifying the message SHALL cause signature
        verification to fail.
        """
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        logger.enable_audit_mode(signing_key)

        entry = logger.log(level, component, message)
        tampered = LogEntry(
            timestamp=entry.timestamp,
            level=entry.level,
            component=entry.component,
            message=entry.message + " TAMPERED",
            data=entry.data,
            signature=entry.signature,
        )

        assert logger.verify_signature(entry)
        assert not logger.verify_signature(tampered)

    def test_disable_audit_mode(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        logger.enable_audit_mode("0123456789abcdef")
        logger.disable_audit_mode()

        entry = logger.info("Test", "unsigned")

        assert entry.signature is None
        assert not logger.verify_signature(entry)


class TestSensitiveDataMaskingProperty:
    """
    Property-based tests for key material masking.

    **Feature: vpn-directory, Property 17: Key material masked in logs**
    """

    @given(
        sensitive_key=sensitive_key_strategy(),
        sensitive_value=st.text(
            alphabet=st.sampled_from("QWXYZ"),
            min_size=5,
            max_size=20,
        ),
        level=log_level_strategy(),
    )
    @settings(max_examples=100)
    def test_sensitive_data_masked(
        self,
        sensitive_key: str,
        sensitive_value: str,
        level: LogLevel,
    ) -> None:
        """
        Property 17: Key material masked in logs.

        *For any* log entry data containing keys matching sensitive patterns
        (private_key, preshared_key, password, token), the values SHALL be
        replaced with "***MASKED***" in the entry and the output.
        """
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output)

        entry = logger.log(level, "ServerDirectory", "Host record", {sensitive_key: sensitive_value})

        assert entry.data[sensitive_key] == "***MASKED***"
        parsed = json.loads(output.getvalue().strip())
        assert parsed["data"][sensitive_key] == "***MASKED***"
        assert sensitive_value not in output.getvalue()

    @given(
        non_sensitive_key=non_sensitive_key_strategy(),
        value=st.text(min_size=1, max_size=50),
    )
    @settings(max_examples=100)
    def test_non_sensitive_data_not_masked(self, non_sensitive_key: str, value: str) -> None:
        """
        Property 17b: Non-sensitive data is not masked.
        """
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        entry = logger.info("Test", "message", {non_sensitive_key: value})

        assert entry.data[non_sensitive_key] == value

    @given(sensitive_key=sensitive_key_strategy(), sensitive_value=st.text(min_size=1, max_size=50))
    @settings(max_examples=100)
    def test_nested_sensitive_data_masked(self, sensitive_key: str, sensitive_value: str) -> None:
        """
        Property 17c: Nested sensitive data is masked.

        *For any* data with sensitive keys inside nested dictionaries or lists
        of dictionaries, the values SHALL be masked at all nesting levels.
        """
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        entry = logger.info("Test", "message", {
            "host": {sensitive_key: sensitive_value, "hostname": "nl1.wg.example.net"},
            "hosts": [{sensitive_key: sensitive_value}],
        })

        assert entry.data["host"][sensitive_key] == "***MASKED***"
        assert entry.data["host"]["hostname"] == "nl1.wg.example.net"
        assert entry.data["hosts"][0][sensitive_key] == "***MASKED***"


class TestErrorContextProperty:
    """
    Property-based tests for error context logging.

    **Feature: vpn-directory, Property 18: Error logs include full context**
    """

    @given(
        component=component_name_strategy(),
        message=message_strategy(),
        error_message=message_strategy(),
    )
    @settings(max_examples=100)
    def test_error_logs_include_error_context(
        self,
        component: str,
        message: str,
        error_message: str,
    ) -> None:
        """
        Property 18: Error logs include full context.

        *For any* error-level log entry, the data field SHALL contain the error
        message and type, and the code and details of structured errors.
        """
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        error = SnapshotError(
            code="malformed_snapshot",
            message=error_message,
            details={"section": "wireguard"},
        )

        entry = logger.log_error(component, message, error, {"attempt": 1})

        assert entry.level == LogLevel.ERROR
        assert entry.data["error_message"] == error_message
        assert entry.data["error_type"] == "SnapshotError"
        assert entry.data["error_code"] == "malformed_snapshot"
        assert entry.data["error_details"] == {"section": "wireguard"}
        assert entry.data["attempt"] == 1

    def test_plain_exception(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())

        entry = logger.log_error("Test", "failed", ValueError("boom"))

        assert entry.data == {"error_message": "boom", "error_type": "ValueError"}
