"""
Performance Tracker
===================

Per-model LLM call metrics and per-request pipeline step timing.

- PerformanceTracker: process-wide response-time and success-rate stats,
  exposed at /api/llm/metrics.
- PipelineTimer: one per request; times each pipeline step, records state
  transitions and logs a performance report when the request finishes.
"""

import logging
import time
import uuid
from collections import deque
from contextlib import contextmanager
from datetime import datetime
from threading import Lock
from typing import Dict, List, Optional, Any

logger = logging.getLogger(__name__)


class PerformanceTracker:
    """
    Tracks LLM performance per model.

    Features:
    - Response time tracking per model
    - Success/failure rate monitoring
    - Last errors kept for diagnostics
    """

    def __init__(self, history_size: int = 100, error_history_size: int = 10):
        self.history_size = history_size
        self.error_history_size = error_history_size
        self._metrics: Dict[str, Dict[str, Any]] = {}
        self._lock = Lock()

    def record_request(
        self,
        model: str,
        duration: float,
        success: bool,
        error: Optional[str] = None
    ):
        """
        Record a request's performance.

        Args:
            model: Model name
            duration: Request duration in seconds
            success: Whether request succeeded
            error: Error message if failed
        """
        with self._lock:
            if model not in self._metrics:
                self._metrics[model] = {
                    'total_requests': 0,
                    'successful_requests': 0,
                    'failed_requests': 0,
                    'total_duration': 0.0,
                    'min_duration': float('inf'),
                    'max_duration': 0.0,
                    'response_times': deque(maxlen=self.history_size),
                    'last_success': None,
                    'last_failure': None,
                    'errors': deque(maxlen=self.error_history_size)
                }

            metrics = self._metrics[model]
            metrics['total_requests'] += 1

            if success:
                metrics['successful_requests'] += 1
                metrics['last_success'] = datetime.now()
            else:
                metrics['failed_requests'] += 1
                metrics['last_failure'] = datetime.now()
                if error:
                    metrics['errors'].append({
                        'timestamp': datetime.now(),
                        'error': error
                    })

            metrics['total_duration'] += duration
            metrics['min_duration'] = min(metrics['min_duration'], duration)
            metrics['max_duration'] = max(metrics['max_duration'], duration)
            metrics['response_times'].append(duration)

            logger.debug(f"[PerformanceTracker] {model}: success={success}, duration={duration:.2f}s")

    def get_metrics(self, model: Optional[str] = None) -> Dict[str, Any]:
        """
        Get performance metrics.

        Args:
            model: Specific model name, or None for all models
        """
        with self._lock:
            if model:
                return self._get_model_metrics(model)
            return {
                model_name: self._get_model_metrics(model_name)
                for model_name in self._metrics.keys()
            }

    def _get_model_metrics(self, model: str) -> Dict[str, Any]:
        if model not in self._metrics:
            return {
                'total_requests': 0,
                'success_rate': 0.0
            }

        metrics = self._metrics[model]
        total = metrics['total_requests']
        successful = metrics['successful_requests']

        avg_duration = metrics['total_duration'] / total if total else 0.0
        success_rate = (successful / total) * 100 if total else 0.0
        recent = metrics['response_times']
        recent_avg = sum(recent) / len(recent) if recent else 0.0

        return {
            'total_requests': total,
            'successful_requests': successful,
            'failed_requests': metrics['failed_requests'],
            'success_rate': round(success_rate, 2),
            'avg_response_time': round(avg_duration, 2),
            'min_response_time': round(metrics['min_duration'], 2) if metrics['min_duration'] != float('inf') else 0.0,
            'max_response_time': round(metrics['max_duration'], 2),
            'recent_avg_response_time': round(recent_avg, 2),
            'last_success': metrics['last_success'].isoformat() if metrics['last_success'] else None,
            'last_failure': metrics['last_failure'].isoformat() if metrics['last_failure'] else None,
            'recent_errors': [
                {'timestamp': e['timestamp'].isoformat(), 'error': e['error']}
                for e in list(metrics['errors'])
            ]
        }

    def reset_metrics(self, model: Optional[str] = None):
        """Reset metrics for one model, or all when model is None."""
        with self._lock:
            if model:
                self._metrics.pop(model, None)
                logger.info(f"[PerformanceTracker] Reset metrics for {model}")
            else:
                self._metrics.clear()
                logger.info("[PerformanceTracker] Reset all metrics")


class PipelineTimer:
    """
    Step timing and state trail for a single pipeline request.

    Usage:
        timer = PipelineTimer()
        with timer.step('classification'):
            ...
        timer.transition('type_selected')
        timer.finish(success=True)
    """

    def __init__(self, request_id: Optional[str] = None, clock=time.perf_counter):
        self.request_id = request_id or f"req_{uuid.uuid4().hex[:12]}"
        self._clock = clock
        self.start_time = clock()
        self.end_time: Optional[float] = None
        self.steps: List[Dict[str, Any]] = []
        self.states: List[str] = []
        self.success: Optional[bool] = None
        self.error: Optional[str] = None

    def transition(self, state) -> None:
        """Record entry into a pipeline state (enum or string)."""
        name = getattr(state, 'value', state)
        self.states.append(name)
        logger.debug(f"[Pipeline] [{self.request_id}] -> {name}")

    @contextmanager
    def step(self, name: str):
        """Time a named step; failures are recorded and re-raised."""
        started = self._clock()
        entry = {'step': name, 'duration': 0.0, 'success': True}
        try:
            yield entry
        except Exception as e:
            entry['success'] = False
            entry['error'] = f"{type(e).__name__}: {e}"
            raise
        finally:
            entry['duration'] = self._clock() - started
            self.steps.append(entry)

    @property
    def total_duration(self) -> float:
        end = self.end_time if self.end_time is not None else self._clock()
        return end - self.start_time

    def finish(self, success: bool, error: Optional[str] = None) -> Dict[str, Any]:
        """Close the timer and log the performance report."""
        self.end_time = self._clock()
        self.success = success
        self.error = error
        report = self.report()

        step_summary = ", ".join(
            f"{s['step']}={s['duration']:.2f}s{'' if s['success'] else '(failed)'}" for s in self.steps
        )
        if success:
            logger.info(f"[Pipeline] [{self.request_id}] completed in {report['total_duration']:.2f}s ({step_summary})")
        else:
            logger.warning(f"[Pipeline] [{self.request_id}] failed after {report['total_duration']:.2f}s: {error} ({step_summary})")
        return report

    def report(self) -> Dict[str, Any]:
        return {
            'request_id': self.request_id,
            'total_duration': round(self.total_duration, 3),
            'success': self.success,
            'error': self.error,
            'states': list(self.states),
            'steps': [dict(s, duration=round(s['duration'], 3)) for s in self.steps],
        }


# Singleton instance
performance_tracker = PerformanceTracker()
