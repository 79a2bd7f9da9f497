"""Tests for completion classification and log lines."""

import logging

import pytest

from courier.sdk.completion import CompletionHandler
from courier.sdk.config import GatewayConfig
from courier.sdk.request import RequestDescriptor, build_transfer_spec
from courier.sdk.result import ErrorKind

LOGGER = "courier.sdk.completion"
ENVELOPE_TEXT = '{"status":0,"message":"ok","data":{"x":1},"extra":"z"}'


@pytest.fixture
def handler(gateway_config):
    return CompletionHandler(gateway_config)


@pytest.fixture
def descriptor():
    return RequestDescriptor(1, "GET", "http://h/p")


class TestClassification:
    """The completion classification table."""

    def test_transport_error(self, handler, descriptor):
        result = handler.complete(descriptor, 7, "", 0, "")
        assert result.success is False
        assert result.kind is ErrorKind.TRANSPORT
        assert result.status_code == 0
        assert result.error_code == 7
        assert result.error_message == "COULDNT_CONNECT"
        assert result.body == ""

    def test_transport_message_without_code_is_an_error(self, handler, descriptor):
        result = handler.complete(descriptor, 0, "boom", 0, "partial")
        assert result.kind is ErrorKind.TRANSPORT
        assert result.body == ""

    def test_non_200_status(self, handler, descriptor):
        result = handler.complete(descriptor, 0, "", 404, "not here")
        assert result.success is False
        assert result.kind is ErrorKind.PROTOCOL
        assert result.status_code == 404

    def test_other_2xx_fail_by_default(self, handler, descriptor):
        assert handler.complete(descriptor, 0, "", 201, "{}").kind is ErrorKind.PROTOCOL

    def test_other_2xx_accepted_when_configured(self, descriptor):
        handler = CompletionHandler(GatewayConfig(accept_any_2xx=True))
        assert handler.complete(descriptor, 0, "", 201, "{}").success is True
        assert handler.complete(descriptor, 0, "", 302, "{}").success is False

    def test_empty_body_cannot_be_decoded(self, handler, descriptor):
        result = handler.complete(descriptor, 0, "", 200, "")
        assert result.success is False
        assert result.kind is ErrorKind.DECODE

    def test_malformed_body(self, handler, descriptor):
        result = handler.complete(descriptor, 0, "", 200, "not json")
        assert result.success is False
        assert result.kind is ErrorKind.DECODE
        assert result.error_message

    def test_scalar_json_is_rejected(self, handler, descriptor):
        result = handler.complete(descriptor, 0, "", 200, "42")
        assert result.kind is ErrorKind.DECODE
        assert result.error_message == "result is not an object or array"

    def test_envelope_is_lifted(self, handler, descriptor):
        result = handler.complete(descriptor, 0, "", 200, ENVELOPE_TEXT)
        assert result.success is True
        assert result.kind is None
        assert result.body == {"status": 0, "message": "ok", "data": {"x": 1}, "extra": "z"}
        assert result.envelope.status == 0
        assert result.envelope.message == "ok"
        assert result.envelope.data == {"x": 1}
        assert result.envelope.extra == {"extra": "z"}

    def test_list_body_has_no_envelope(self, handler, descriptor):
        result = handler.complete(descriptor, 0, "", 200, "[1, 2]")
        assert result.success is True
        assert result.body == [1, 2]
        assert result.envelope is None

    def test_raw_text_when_decoding_is_disabled(self, handler, descriptor):
        descriptor.set_decode_json(False)
        result = handler.complete(descriptor, 0, "", 200, "")
        assert result.success is True
        assert result.body == ""

    def test_elapsed_time_is_kept(self, handler, descriptor):
        assert handler.complete(descriptor, 0, "", 200, "{}", 12).elapsed_ms == 12


class TestLogging:
    def test_one_info_line_on_success(self, handler, descriptor, caplog):
        caplog.set_level(logging.INFO, logger=LOGGER)
        handler.complete(descriptor, 0, "", 200, ENVELOPE_TEXT, 3, step=4)
        assert len(caplog.records) == 1
        record = caplog.records[0]
        assert record.levelno == logging.INFO
        assert "[IO:4] [HTTP] [GET] http://h/p" in record.getMessage()
        assert "cost_time:3ms" in record.getMessage()
        assert "HTTP_CODE: 200" in record.getMessage()
        assert "[RESPONSE]" in record.getMessage()

    def test_response_body_hidden_without_debug(self, descriptor, caplog):
        caplog.set_level(logging.INFO, logger=LOGGER)
        CompletionHandler(GatewayConfig(debug=False)).complete(descriptor, 0, "", 200, "{}")
        assert "[RESPONSE]" not in caplog.records[0].getMessage()

    def test_one_error_line_on_failure(self, handler, descriptor, caplog):
        caplog.set_level(logging.INFO, logger=LOGGER)
        handler.complete(descriptor, 28, "timed out", 0, "")
        assert len(caplog.records) == 1
        assert caplog.records[0].levelno == logging.ERROR
        assert "ERROR OPERATION_TIMEDOUT timed out" in caplog.records[0].getMessage()

    def test_decode_failure_logs_diagnostic(self, handler, descriptor, caplog):
        caplog.set_level(logging.INFO, logger=LOGGER)
        handler.complete(descriptor, 0, "", 200, "not json")
        message = caplog.records[0].getMessage()
        assert "[JSON_DECODE] => error" in message
        assert "[TEXT] => not json" in message

    def test_markers_and_body_summary(self, handler, gateway_config, caplog):
        caplog.set_level(logging.INFO, logger=LOGGER)
        descriptor = RequestDescriptor(2, "POST", "/orders", {"a": 1})
        descriptor.spec = build_transfer_spec(descriptor, gateway_config)
        descriptor.lazy = True
        handler.complete(descriptor, 0, "", 200, "{}", multi=True)
        message = caplog.records[0].getMessage()
        assert "[MULTI LAZY POST] http://gateway.test/orders" in message
        assert '[QUERY] => {"a": 1}' in message

    def test_get_params_are_not_summarized(self, handler, gateway_config, caplog):
        caplog.set_level(logging.INFO, logger=LOGGER)
        descriptor = RequestDescriptor(3, "GET", "/orders", {"a": 1})
        descriptor.spec = build_transfer_spec(descriptor, gateway_config)
        handler.complete(descriptor, 0, "", 200, "{}")
        assert "[QUERY]" not in caplog.records[0].getMessage()
