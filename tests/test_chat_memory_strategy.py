"""
Unit tests for answer synthesis, the analysis store and chat turns.
"""

import threading
import unittest
from unittest import mock

from chat_memory_strategy import (
    AnalysisStore,
    ChatMessage,
    ask_question,
    generate_answer,
    get_history,
)
from core_matcher import analyze_documents
from exceptions import InvalidQuestion, NotFound
from system_prompt import (
    EXPERIENCE_GENERIC_ANSWER,
    NO_CONTEXT_ANSWER,
    NO_DEGREE_ANSWER,
)


SAMPLE_RESUME = (
    "Jane Doe. Senior backend engineer.\n"
    "Degree: Bachelor of Science in Computer Science. Graduated 2015.\n"
    "I have 5 years of experience with distributed systems. "
    "Built payment pipelines in Python and Go."
)


def _create_record(store, resume=SAMPLE_RESUME, job_description="Python engineer"):
    return analyze_documents(store, resume.encode(), "text/plain", job_description.encode(), "text/plain")


class TestAnswerRules(unittest.TestCase):
    """Test the ordered answer rules."""

    def test_experience_years_are_extracted(self):
        resume = "I have 5 years of experience with distributed systems."
        answer = generate_answer("how much experience does the candidate have?", [], resume, "")
        self.assertEqual(answer, "The candidate has 5 years of experience with distributed systems.")

    def test_bare_experience_phrase(self):
        answer = generate_answer("How much experience?", [], "Backend engineer with 5 years of experience.", "")
        self.assertEqual(answer, "The candidate has 5 years of experience.")

    def test_experience_without_years(self):
        answer = generate_answer("Any experience with Go?", [], "Worked with Go at Acme.", "")
        self.assertEqual(answer, EXPERIENCE_GENERIC_ANSWER)

    def test_experience_with_years_but_no_pattern(self):
        answer = generate_answer("What experience?", [], "Many years at Acme.", "")
        self.assertEqual(answer, EXPERIENCE_GENERIC_ANSWER)

    def test_degree_is_quoted(self):
        answer = generate_answer("Does she have a university degree?", [], SAMPLE_RESUME, "")
        self.assertEqual(
            answer,
            'Yes, the candidate has education credentials. '
            'Specifically: "Bachelor of Science in Computer Science".',
        )

    def test_education_without_degree_keyword(self):
        answer = generate_answer("What is her education?", [], "Bachelor of Arts in History.", "")
        self.assertEqual(answer, NO_DEGREE_ANSWER)

    def test_degree_mentioned_without_pattern(self):
        answer = generate_answer("Education?", [], "Degree: pending", "")
        self.assertEqual(answer, NO_DEGREE_ANSWER)

    def test_education_rule_wins_over_experience(self):
        answer = generate_answer("Degree and experience?", [], "No formal education.", "")
        self.assertEqual(answer, NO_DEGREE_ANSWER)

    def test_default_answer_quotes_context(self):
        chunks = ["Built payment pipelines in Python and Go.", "x" * 300]
        answer = generate_answer("Which languages?", chunks, SAMPLE_RESUME, "")
        context = "\n".join(chunks)[:200]
        self.assertEqual(
            answer,
            f"Based on the resume information: {context}... "
            "This relates to your question about the candidate's qualifications.",
        )

    def test_default_answer_without_context_is_deterministic(self):
        first = generate_answer("Which languages?", [], "", "")
        second = generate_answer("Which languages?", ["   "], "", "")
        self.assertEqual(first, NO_CONTEXT_ANSWER)
        self.assertEqual(second, NO_CONTEXT_ANSWER)


class TestAnalysisStore(unittest.TestCase):
    """Test record lookup, ids and conversation history."""

    def setUp(self):
        self.store = AnalysisStore()

    def test_unknown_id_raises_not_found(self):
        with self.assertRaises(NotFound) as ctx:
            self.store.get("nonexistent")
        self.assertEqual(ctx.exception.analysis_id, "nonexistent")

    def test_ids_are_short_base36(self):
        record = _create_record(self.store)
        self.assertEqual(len(record.id), 9)
        self.assertTrue(all(c in "0123456789abcdefghijklmnopqrstuvwxyz" for c in record.id))
        self.assertIn(record.id, self.store)

    def test_id_collision_is_regenerated(self):
        with mock.patch.object(
            AnalysisStore, "_generate_id", side_effect=["aaaaaaaaa", "aaaaaaaaa", "bbbbbbbbb"]
        ):
            first = _create_record(self.store)
            second = _create_record(self.store)
        self.assertEqual(first.id, "aaaaaaaaa")
        self.assertEqual(second.id, "bbbbbbbbb")

    def test_append_turn(self):
        record = _create_record(self.store)
        self.store.append_turn(record.id, "Q?", "A.")
        self.assertEqual(
            record.conversation_history,
            (ChatMessage("user", "Q?"), ChatMessage("assistant", "A.")),
        )

    def test_append_turn_unknown_id(self):
        with self.assertRaises(NotFound):
            self.store.append_turn("missing", "Q?", "A.")

    def test_history_is_a_snapshot(self):
        record = _create_record(self.store)
        snapshot = record.conversation_history
        record.append_turn("Q?", "A.")
        self.assertEqual(snapshot, ())
        self.assertEqual(len(record.conversation_history), 2)

    def test_summary(self):
        record = _create_record(self.store)
        summary = record.summary()
        self.assertEqual(summary.id, record.id)
        self.assertEqual(summary.match_score, record.match_score)
        self.assertEqual(summary.assessment, record.assessment)


class TestAskQuestion(unittest.TestCase):
    """Test question answering over a stored analysis."""

    def setUp(self):
        self.store = AnalysisStore()
        self.record = _create_record(self.store)

    def test_answer_and_history(self):
        result = ask_question(self.store, self.record.id, "How much experience?")
        self.assertEqual(result["question"], "How much experience?")
        self.assertIn("5 years", result["answer"])
        self.assertIn("distributed systems", result["answer"])
        self.assertEqual(
            get_history(self.store, self.record.id),
            [
                {"role": "user", "content": "How much experience?"},
                {"role": "assistant", "content": result["answer"]},
            ],
        )

    def test_two_questions_append_four_entries_in_order(self):
        first = ask_question(self.store, self.record.id, "Which degree?")
        second = ask_question(self.store, self.record.id, "Which languages?")
        history = self.record.conversation_history
        self.assertEqual(
            [(m.role, m.content) for m in history],
            [
                ("user", "Which degree?"),
                ("assistant", first["answer"]),
                ("user", "Which languages?"),
                ("assistant", second["answer"]),
            ],
        )

    def test_default_answer_uses_retrieved_chunks(self):
        result = ask_question(self.store, self.record.id, "Python and Go pipelines?")
        self.assertTrue(result["answer"].startswith("Based on the resume information: "))

    def test_invalid_questions(self):
        for question in ("", "   ", None, 42, ["what?"]):
            with self.assertRaises(InvalidQuestion):
                ask_question(self.store, self.record.id, question)
        self.assertEqual(self.record.conversation_history, ())

    def test_question_with_lone_surrogate_is_answered(self):
        result = ask_question(self.store, self.record.id, "skills \ud83d?")
        self.assertEqual(result["question"], "skills \ud83d?")
        self.assertEqual(len(self.record.conversation_history), 2)

    def test_unknown_analysis(self):
        with self.assertRaises(NotFound):
            ask_question(self.store, "nonexistent", "Any degree?")
        with self.assertRaises(NotFound):
            get_history(self.store, "nonexistent")

    def test_concurrent_questions_keep_turns_paired(self):
        def worker(n):
            for i in range(20):
                ask_question(self.store, self.record.id, f"question {n}-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        history = self.record.conversation_history
        self.assertEqual(len(history), 8 * 20 * 2)
        for user, assistant in zip(history[::2], history[1::2]):
            self.assertEqual(user.role, "user")
            self.assertEqual(assistant.role, "assistant")
        self.assertEqual(len({m.content for m in history[::2]}), 160)


if __name__ == "__main__":
    unittest.main()
