from unittest.mock import MagicMock

import dockwatch.__main__ as app_main
from dockwatch.errors import Cancelled, RetryExhausted, TransportError
from dockwatch.model import Container


def patch_runtime(mocker):
    mocker.patch("dockwatch.__main__.logging.basicConfig")
    mocker.patch("dockwatch.__main__.signal.signal")
    backend = mocker.patch("dockwatch.__main__.DockerBackend")
    monitor_cls = mocker.patch("dockwatch.__main__.Monitor")
    return backend, monitor_cls


def test_main_stops_cleanly_on_cancel(mocker):
    backend, monitor_cls = patch_runtime(mocker)
    monitor_cls.return_value.run.side_effect = Cancelled("stopped")

    assert app_main.main([]) == 0
    backend.return_value.close.assert_called_once()
    callback, source, config = monitor_cls.call_args[0]
    assert callback is app_main.print_snapshot
    assert source is backend.return_value
    backend.assert_called_once_with(timeout=30.0)


def test_main_reports_fatal_errors(mocker, capsys):
    backend, monitor_cls = patch_runtime(mocker)
    monitor_cls.return_value.run.side_effect = RetryExhausted(TransportError("down"), 3)

    assert app_main.main([]) == 1
    assert "giving up after 3 attempts" in capsys.readouterr().err
    backend.return_value.close.assert_called_once()


def test_main_rejects_bad_config(mocker, tmp_path, capsys):
    patch_runtime(mocker)
    path = tmp_path / "config.yaml"
    path.write_text("monitor:\n  debounce: -1\n")

    assert app_main.main([str(path)]) == 2
    assert "debounce" in capsys.readouterr().err


def test_signal_handler_stops_monitor(mocker):
    backend, monitor_cls = patch_runtime(mocker)
    monitor_cls.return_value.run.side_effect = Cancelled("stopped")
    app_main.main([])

    handler = app_main.signal.signal.call_args_list[0][0][1]
    handler(2, MagicMock())
    monitor_cls.return_value.stop.assert_called_once()


def test_print_snapshot(capsys):
    app_main.print_snapshot([Container(id="1", name="web", image="nginx", state="running")])
    out = capsys.readouterr().out
    assert "1 containers" in out
    assert "web" in out and "running" in out
