"""
Unit Tests for Logging and Telemetry Utilities
"""

import json
import logging

import pytest

from sequence_forecaster.config.training_config import MonitoringConfig
from sequence_forecaster.utils.logging import (
    PACKAGE_LOGGER,
    MemoryUsageFilter,
    StructuredFormatter,
    TextFormatter,
    TrainingLogger,
    build_handlers,
    get_training_logger,
    setup_training_logging,
    stage_logging
)
from sequence_forecaster.utils.metrics import (
    FileBackend,
    MemoryBackend,
    Metric,
    MetricsCollector,
    TrainingMetrics,
    create_metrics_collector
)


def make_record(message="run.started", **extra):
    record = logging.LogRecord("sequence_forecaster.test", logging.INFO, __file__, 10,
                               message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestFormatters:

    def test_structured_formatter_emits_json(self):
        output = StructuredFormatter().format(make_record(run_id="run_1", epochs=5))
        entry = json.loads(output)

        assert entry["event"] == "run.started"
        assert entry["level"] == "INFO"
        assert entry["run_id"] == "run_1"
        assert entry["extra"] == {"epochs": 5}

    def test_structured_formatter_stringifies_unserializable_extra(self):
        output = StructuredFormatter().format(make_record(shape=object()))

        assert isinstance(json.loads(output)['extra']['shape'], str)

    def test_text_formatter_appends_extra(self):
        output = TextFormatter().format(make_record(run_id="run_1"))

        assert "run.started" in output
        assert "run_id=run_1" in output

    def test_text_formatter_without_extra(self):
        output = TextFormatter(include_extra=False).format(make_record(run_id="run_1"))

        assert "run_id" not in output

    def test_memory_filter_stamps_rss(self):
        record = make_record()

        assert MemoryUsageFilter().filter(record)
        assert record.rss_mb is None or record.rss_mb > 0


@pytest.mark.unit
class TestTrainingLogger:

    def test_context_is_attached(self, caplog):
        logger = TrainingLogger("sequence_forecaster.tests.context")
        logger.bind(run_id="run_7")

        with caplog.at_level(logging.INFO, logger="sequence_forecaster.tests.context"):
            logger.info("run.epoch_completed", extra={'epoch': 3})

        record = caplog.records[-1]
        assert record.run_id == "run_7"
        assert record.epoch == 3

    def test_temporary_context_restored(self, caplog):
        logger = TrainingLogger("sequence_forecaster.tests.temporary")

        with caplog.at_level(logging.INFO, logger="sequence_forecaster.tests.temporary"):
            with logger.context(stage="prepare"):
                logger.info("inside")
            logger.info("outside")

        inside, outside = caplog.records[-2:]
        assert inside.stage == "prepare"
        assert not hasattr(outside, "stage")

    def test_unbind(self, caplog):
        logger = TrainingLogger("sequence_forecaster.tests.unbind")
        logger.bind(run_id="run_1", epoch=2)
        logger.unbind("epoch")

        with caplog.at_level(logging.INFO, logger="sequence_forecaster.tests.unbind"):
            logger.info("run.progress")

        record = caplog.records[-1]
        assert record.run_id == "run_1"
        assert not hasattr(record, "epoch")

    def test_get_training_logger_namespaces(self):
        assert get_training_logger("custom").name == f"{PACKAGE_LOGGER}.custom"
        assert get_training_logger(f"{PACKAGE_LOGGER}.core").name == f"{PACKAGE_LOGGER}.core"

    def test_stage_logging_reraises(self, caplog):
        logger = TrainingLogger("sequence_forecaster.tests.stage")

        with caplog.at_level(logging.INFO, logger="sequence_forecaster.tests.stage"):
            with pytest.raises(ValueError):
                with stage_logging(logger, "prepare"):
                    raise ValueError("bad rows")

        messages = [r.getMessage() for r in caplog.records]
        assert "stage.started" in messages
        assert "stage.failed" in messages
        assert "stage.completed" not in messages

    def test_build_handlers_follows_config(self):
        console_only = build_handlers(MonitoringConfig(enable_console=True, enable_file=False))
        json_console = build_handlers(MonitoringConfig(log_format="json"))
        nothing = build_handlers(MonitoringConfig(enable_console=False, enable_file=False))

        assert len(console_only) == 1
        assert isinstance(console_only[0].formatter, TextFormatter)
        assert isinstance(json_console[0].formatter, StructuredFormatter)
        assert nothing == []

    def test_setup_replaces_handlers(self, tmp_path):
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        try:
            monitoring = MonitoringConfig(log_dir=str(tmp_path), enable_file=True)
            setup_training_logging(monitoring)
            effective = setup_training_logging(monitoring, log_level="warning")

            assert len(package_logger.handlers) == 2
            assert package_logger.level == logging.WARNING
            assert effective.log_level == "warning"
            assert (tmp_path / "forecaster.log").exists()
        finally:
            for handler in list(package_logger.handlers):
                package_logger.removeHandler(handler)
                handler.close()
            package_logger.setLevel(logging.NOTSET)


@pytest.mark.unit
class TestMetricsCollector:

    def test_buffer_flushes_at_size(self):
        backend = MemoryBackend()
        collector = MetricsCollector(backend, buffer_size=2)

        collector.emit("ml.test.value", 1.0)
        assert backend.metrics == []

        collector.emit("ml.test.value", 2.0)
        assert backend.values("ml.test.value") == [1.0, 2.0]

    def test_summary(self):
        collector = MetricsCollector(MemoryBackend())
        for value in [1.0, 2.0, 3.0, 4.0]:
            collector.emit("ml.test.loss", value)

        summary = collector.get_metric_summary("ml.test.loss")

        assert summary.count == 4
        assert summary.min == 1.0
        assert summary.max == 4.0
        assert summary.mean == pytest.approx(2.5)
        assert collector.get_metric_summary("ml.test.unknown") is None

    def test_file_backend_writes_json_lines(self, tmp_path):
        path = tmp_path / "metrics" / "run.jsonl"
        collector = create_metrics_collector("file", file_path=str(path))

        collector.emit("ml.test.value", 3, tags={'run_id': "run_1"})
        collector.close()

        lines = path.read_text().splitlines()
        assert len(lines) == 1
        entry = json.loads(lines[0])
        assert entry['name'] == "ml.test.value"
        assert entry['tags'] == {'run_id': "run_1"}

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_metrics_collector("statsd")

    def test_metric_to_dict(self):
        metric = Metric(name="ml.test", value=1.5, unit="s")

        as_dict = metric.to_dict()

        assert as_dict['type'] == "gauge"
        assert as_dict['unit'] == "s"
        assert 'timestamp' in as_dict


@pytest.mark.unit
class TestTrainingMetrics:

    def setup_method(self):
        self.backend = MemoryBackend()
        self.collector = MetricsCollector(self.backend, buffer_size=1000)
        self.metrics = TrainingMetrics(self.collector)

    def test_default_tags_applied(self):
        self.metrics.set_default_tags(pipeline="sequence_forecaster")

        self.metrics.prediction_quality(0.04, 0.2, 0.15)
        self.collector.flush()

        assert all(m.tags['pipeline'] == "sequence_forecaster" for m in self.backend.metrics)
        assert self.backend.values("ml.model.test_rmse") == [0.2]

    def test_epoch_without_validation_loss(self):
        self.metrics.epoch_completed("run_1", 0, 0.5, None, 0.01)
        self.collector.flush()

        assert self.backend.values("ml.run.training_loss") == [0.5]
        assert self.backend.values("ml.run.validation_loss") == []

    def test_data_prepared(self):
        self.metrics.data_prepared(rows=40, features=1, train_windows=8,
                                   test_windows=2, coerced_cells=0)
        self.collector.flush()

        assert self.backend.values("ml.data.train_windows") == [8]
        assert self.backend.values("ml.data.test_windows") == [2]

    def test_error_occurred(self):
        self.metrics.error_occurred("orchestrator", "RuntimeError")
        self.collector.flush()

        metric = self.backend.metrics[-1]
        assert metric.name == "ml.errors.occurred"
        assert metric.tags == {'component': "orchestrator", 'error_type': "RuntimeError"}
