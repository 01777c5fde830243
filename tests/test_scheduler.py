"""Tests for timer-thread scheduling and the quiz reveal window it drives."""

import threading
import time

import pytest

from crosspoint.core.quiz_bank import DEFAULT_QUIZ_BANK
from crosspoint.core.services.quiz_session import QuizPhase, QuizSession
from crosspoint.core.services.scheduler import ThreadTimerScheduler

REVEAL_DELAY = 0.05


@pytest.fixture
def scheduler() -> ThreadTimerScheduler:
    return ThreadTimerScheduler(name="TestTimer")


def _wait_until(condition, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


def _answer(session):
    question = session.current_question()
    session.select_option(question.answer)
    return session.submit()


class TestThreadTimerScheduler:
    def test_action_runs_after_delay(self, scheduler):
        fired = threading.Event()
        started = time.monotonic()
        scheduler.schedule(REVEAL_DELAY, fired.set)
        assert fired.wait(timeout=2)
        assert time.monotonic() - started >= REVEAL_DELAY

    def test_cancelled_action_never_runs(self, scheduler):
        fired = threading.Event()
        scheduler.schedule(REVEAL_DELAY, fired.set).cancel()
        assert not fired.wait(timeout=REVEAL_DELAY * 4)

    def test_negative_delay_rejected(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.schedule(-0.1, lambda: None)

    def test_failing_action_is_logged(self, scheduler, caplog):
        done = threading.Event()

        def explode():
            done.set()
            raise RuntimeError("boom")

        scheduler.schedule(0.0, explode)
        assert done.wait(timeout=2)
        assert _wait_until(lambda: "Scheduled action TestTimer failed" in caplog.text)


class TestRevealWindow:
    def test_uncancelled_quiz_completes(self, scheduler):
        finished = threading.Event()
        results = []

        def on_complete(result):
            results.append(result)
            finished.set()

        session = QuizSession(
            "Financial Modeling",
            DEFAULT_QUIZ_BANK.questions_for("Financial Modeling"),
            scheduler,
            reveal_delay=REVEAL_DELAY,
            on_complete=on_complete,
        )
        assert _answer(session) is True
        assert session.phase is QuizPhase.ADVANCING
        assert finished.wait(timeout=2)
        assert session.phase is QuizPhase.COMPLETED
        assert [(r.final_score, r.total) for r in results] == [(1, 1)]

    def test_cancel_during_reveal_suppresses_completion(self, scheduler):
        finished = threading.Event()
        session = QuizSession(
            "Financial Modeling",
            DEFAULT_QUIZ_BANK.questions_for("Financial Modeling"),
            scheduler,
            reveal_delay=REVEAL_DELAY,
            on_complete=lambda result: finished.set(),
        )
        _answer(session)
        assert session.cancel() is True
        assert not finished.wait(timeout=REVEAL_DELAY * 4)
        assert session.phase is QuizPhase.CANCELLED
        assert session.result is None

    def test_multi_question_quiz_advances_on_timer(self, scheduler):
        finished = threading.Event()
        session = QuizSession(
            "Physics",
            DEFAULT_QUIZ_BANK.questions_for("Physics"),
            scheduler,
            reveal_delay=REVEAL_DELAY,
            on_complete=lambda result: finished.set(),
        )
        for index in range(session.total):
            assert _wait_until(lambda: session.phase is QuizPhase.ANSWERING and session.index == index)
            _answer(session)
        assert finished.wait(timeout=2)
        assert session.result.final_score == 3


def test_controller_records_outcome_from_timer_thread(make_controller):
    controller = make_controller()
    controller.start_quiz("Financial Modeling")
    question = controller.quiz_session.current_question()
    controller.select_option(question.answer)
    controller.submit_answer()
    assert _wait_until(lambda: controller.last_outcome is not None)
    assert controller.last_outcome.passed is True
    assert controller.quiz_session is None
    assert controller.verified_categories() == ["Financial Modeling"]
