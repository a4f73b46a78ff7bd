"""
Unit tests for PerformanceTracker and PipelineTimer
===================================================

Tests per-model metrics collection and per-request step timing.
"""

import pytest

from services.performance_tracker import PerformanceTracker, PipelineTimer


class TestPerformanceTracker:
    """Test suite for PerformanceTracker."""

    def setup_method(self):
        """Setup for each test."""
        # Create fresh tracker for each test
        self.tracker = PerformanceTracker(history_size=3, error_history_size=2)

    def test_record_successful_request(self):
        """Test recording a successful request."""
        self.tracker.record_request(model='test-model', duration=1.5, success=True)

        metrics = self.tracker.get_metrics('test-model')

        assert metrics['total_requests'] == 1
        assert metrics['successful_requests'] == 1
        assert metrics['failed_requests'] == 0
        assert metrics['success_rate'] == 100.0
        assert metrics['avg_response_time'] == 1.5
        assert metrics['last_success'] is not None
        assert metrics['recent_errors'] == []

    def test_record_failed_request(self):
        """Test recording a failed request."""
        self.tracker.record_request(
            model='test-model',
            duration=2.0,
            success=False,
            error='Connection timeout'
        )

        metrics = self.tracker.get_metrics('test-model')

        assert metrics['failed_requests'] == 1
        assert metrics['success_rate'] == 0.0
        assert metrics['recent_errors'][0]['error'] == 'Connection timeout'

    def test_mixed_requests(self):
        for duration, success in ((1.0, True), (3.0, False), (2.0, True), (4.0, True)):
            self.tracker.record_request('test-model', duration, success)

        metrics = self.tracker.get_metrics('test-model')

        assert metrics['total_requests'] == 4
        assert metrics['success_rate'] == 75.0
        assert metrics['min_response_time'] == 1.0
        assert metrics['max_response_time'] == 4.0
        assert metrics['avg_response_time'] == 2.5
        # Only the last three durations are kept for the recent average
        assert metrics['recent_avg_response_time'] == 3.0

    def test_error_history_is_bounded(self):
        for i in range(5):
            self.tracker.record_request('test-model', 1.0, False, error=f'error {i}')

        errors = self.tracker.get_metrics('test-model')['recent_errors']

        assert [e['error'] for e in errors] == ['error 3', 'error 4']

    def test_unknown_model(self):
        assert self.tracker.get_metrics('missing') == {'total_requests': 0, 'success_rate': 0.0}

    def test_all_models(self):
        self.tracker.record_request('model-a', 1.0, True)
        self.tracker.record_request('model-b', 1.0, True)

        assert set(self.tracker.get_metrics()) == {'model-a', 'model-b'}

    def test_reset_metrics(self):
        self.tracker.record_request('model-a', 1.0, True)
        self.tracker.record_request('model-b', 1.0, True)

        self.tracker.reset_metrics('model-a')
        assert set(self.tracker.get_metrics()) == {'model-b'}

        self.tracker.reset_metrics()
        assert self.tracker.get_metrics() == {}


class StepClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestPipelineTimer:
    """Test suite for PipelineTimer."""

    def setup_method(self):
        self.clock = StepClock()
        self.timer = PipelineTimer(request_id='req_test', clock=self.clock)

    def test_generated_request_id(self):
        assert PipelineTimer().request_id.startswith('req_')

    def test_step_timing(self):
        with self.timer.step('classification'):
            self.clock.now += 0.5

        step = self.timer.steps[0]
        assert step['step'] == 'classification'
        assert step['duration'] == 0.5
        assert step['success'] is True

    def test_failed_step_is_recorded_and_reraised(self):
        with pytest.raises(ValueError):
            with self.timer.step('content'):
                self.clock.now += 1.0
                raise ValueError("bad content")

        step = self.timer.steps[0]
        assert step['success'] is False
        assert step['error'] == 'ValueError: bad content'
        assert step['duration'] == 1.0

    def test_transitions(self):
        self.timer.transition('start')
        self.timer.transition('done')

        assert self.timer.states == ['start', 'done']

    def test_finish_report(self):
        self.timer.transition('start')
        with self.timer.step('unified'):
            self.clock.now += 2.0
        self.clock.now += 0.25

        report = self.timer.finish(success=True)

        assert report['request_id'] == 'req_test'
        assert report['total_duration'] == 2.25
        assert report['success'] is True
        assert report['states'] == ['start']
        assert report['steps'][0]['step'] == 'unified'

    def test_finish_failure(self):
        report = self.timer.finish(success=False, error='ParseError: bad')

        assert report['success'] is False
        assert report['error'] == 'ParseError: bad'
