import math
import threading
import urllib.error
import urllib.request

import pytest

from sdmetrics_adapter.prometheus_exporter import (
    CONTENT_TYPE,
    build_server,
    main,
    render_gauge,
)


def _sample_line(text):
    return text.splitlines()[-1]


def test_render_gauge_default_metric():
    assert render_gauge("foo", 0, "Custom metric") == (
        "# HELP foo Custom metric\n# TYPE foo gauge\nfoo 0\n"
    )


def test_render_gauge_type_line():
    lines = render_gauge("requests_total", 5, "Custom metric").splitlines()
    assert lines[1] == "# TYPE requests_total gauge"
    assert lines[2].startswith("requests_total ")


@pytest.mark.parametrize("value", [0, 1, -3, 0.25, 1e6, 123456789, 1e-7, 42.5])
def test_render_gauge_value_round_trips(value):
    text = render_gauge("m", value, "h")
    name, rendered = _sample_line(text).split(" ")
    assert name == "m"
    assert float(rendered) == value


def test_large_value_uses_exponent_form():
    assert _sample_line(render_gauge("m", 1000000, "h")) == "m 1e+06"


def test_special_values():
    assert _sample_line(render_gauge("m", math.inf, "h")) == "m +Inf"
    assert _sample_line(render_gauge("m", -math.inf, "h")) == "m -Inf"
    assert _sample_line(render_gauge("m", math.nan, "h")) == "m NaN"


def test_help_text_is_escaped():
    text = render_gauge("m", 1, "a\\b\nc")
    assert text.splitlines()[0] == "# HELP m a\\\\b\\nc"
    assert len(text.splitlines()) == 3


@pytest.mark.parametrize("name", ["", "1abc", "foo-bar", "foo bar"])
def test_invalid_metric_name(name):
    with pytest.raises(ValueError):
        render_gauge(name, 0, "h")


@pytest.fixture
def server():
    srv = build_server(0, "foo", 7)
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    yield srv
    srv.shutdown()
    srv.server_close()
    thread.join(timeout=5)


def test_server_serves_metrics(server):
    port = server.server_address[1]
    with urllib.request.urlopen(f"http://127.0.0.1:{port}/metrics", timeout=5) as resp:
        body = resp.read().decode("utf-8")
        content_type = resp.headers["Content-Type"]
    assert body == render_gauge("foo", 7, "Custom metric")
    assert content_type == CONTENT_TYPE


def test_server_unknown_path_is_not_found(server):
    port = server.server_address[1]
    with pytest.raises(urllib.error.HTTPError) as info:
        urllib.request.urlopen(f"http://127.0.0.1:{port}/other", timeout=5)
    assert info.value.code == 404


def test_build_server_rejects_invalid_name():
    with pytest.raises(ValueError):
        build_server(0, "bad name", 1)


def test_main_fails_for_invalid_name():
    assert main(["--metric-name", "1bad", "--port", "0"]) == 1