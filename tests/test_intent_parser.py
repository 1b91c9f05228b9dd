"""
PeopleCore HR Assistant
Tests — model reply parsing.

Covers:
    - JSON extraction strategies (fences, bare object, embedded object)
    - intent classification and field picking
    - total behaviour: every input maps to exactly one intent
"""

import pytest

from peoplecore.ai.intents import (
    Conversation,
    CreateEmployee,
    DataQuery,
    GenerateCertificate,
    LoanEligibility,
    PolicyLookup,
    PromoteEmployee,
    UnknownIntent,
    _balanced_braces,
    extract_json_object,
    parse_intent,
)


class TestExtractJsonObject:

    def test_json_fence(self):
        text = 'Sure!\n```json\n{"intent": "query", "sql": "SELECT 1"}\n```\nDone.'
        assert extract_json_object(text) == {"intent": "query", "sql": "SELECT 1"}

    def test_plain_fence(self):
        text = '```\n{"intent": "conversation", "response": "hi"}\n```'
        assert extract_json_object(text)["response"] == "hi"

    def test_bare_object(self):
        assert extract_json_object('  {"intent": "loan_check"}  ') == {"intent": "loan_check"}

    def test_object_embedded_in_prose(self):
        text = 'Here you go: {"intent": "query", "sql": "SELECT \'{x}\' AS y"} hope it helps'
        obj = extract_json_object(text)
        assert obj["sql"] == "SELECT '{x}' AS y"

    def test_first_parsable_span_wins(self):
        text = 'ignore {not json} then {"intent": "conversation", "response": "ok"}'
        assert extract_json_object(text)["response"] == "ok"

    def test_object_inside_unclosed_brace(self):
        text = 'Thinking { {"intent": "conversation", "response": "ok"} and then'
        assert extract_json_object(text) == {"intent": "conversation", "response": "ok"}

    def test_quotes_in_prose_between_objects(self):
        text = 'He said "hi {x} and then {"intent": "loan_check"}'
        assert extract_json_object(text) == {"intent": "loan_check"}

    def test_long_run_of_unclosed_braces(self):
        assert extract_json_object("{" * 200_000) is None
        assert list(_balanced_braces("{" * 50_000 + "{}")) == ["{}"]

    @pytest.mark.parametrize("text", [None, "", "   ", "no braces at all", "[1, 2, 3]", "{broken"])
    def test_nothing_to_extract(self, text):
        assert extract_json_object(text) is None


class TestParseIntent:

    def test_non_json_becomes_conversation_with_raw_text(self):
        intent = parse_intent("I'm not sure what you mean.")
        assert intent == Conversation("I'm not sure what you mean.")

    def test_missing_intent_field_becomes_conversation(self):
        raw = '{"sql": "SELECT 1"}'
        assert parse_intent(raw) == Conversation(raw)

    def test_empty_reply(self):
        assert parse_intent(None) == Conversation("")

    def test_conversation(self):
        intent = parse_intent('{"intent": "conversation", "response": "Hello John"}')
        assert intent == Conversation("Hello John")

    def test_query(self):
        intent = parse_intent(
            '```json\n{"intent": "query", "sql": "SELECT * FROM salaries", '
            '"explanation": "All salaries"}\n```'
        )
        assert isinstance(intent, DataQuery)
        assert intent.sql == "SELECT * FROM salaries"
        assert intent.explanation == "All salaries"

    def test_intent_tag_case_insensitive(self):
        assert isinstance(parse_intent('{"intent": "QUERY", "sql": "SELECT 1"}'), DataQuery)

    @pytest.mark.parametrize("raw,hint", [
        ('{"intent": "loan_check", "loanType": "Car"}', "Car"),
        ('{"intent": "loan_check", "loan_type": "housing"}', "housing"),
        ('{"intent": "loan_eligibility"}', ""),
    ])
    def test_loan_check(self, raw, hint):
        assert parse_intent(raw) == LoanEligibility(hint)

    def test_create_employee_keeps_known_fields(self):
        intent = parse_intent(
            '{"intent": "create_employee", "fullName": "Sara Ali", "email": "sara@hr.com", '
            '"grade": "Grade 9", "salary": 9000, "department": "", "favouriteColour": "red"}'
        )
        assert isinstance(intent, CreateEmployee)
        assert intent.fields == {
            "fullName": "Sara Ali", "email": "sara@hr.com", "grade": "Grade 9", "salary": 9000,
        }

    def test_promote_employee(self):
        intent = parse_intent(
            '{"intent": "promote_employee", "employeeName": "John Doe", "newGrade": "Grade 11"}'
        )
        assert intent == PromoteEmployee({"employeeName": "John Doe", "newGrade": "Grade 11"})

    def test_certificate_aliases(self):
        assert parse_intent('{"intent": "generate_certificate", "employeeName": "me"}') == GenerateCertificate("me")
        assert parse_intent('{"intent": "salary_certificate"}') == GenerateCertificate("")

    @pytest.mark.parametrize("raw,query", [
        ('{"intent": "policy_lookup", "query": "remote work"}', "remote work"),
        ('{"intent": "search_policies", "query": " car loan "}', "car loan"),
        ('{"intent": "policy"}', ""),
    ])
    def test_policy_lookup_aliases(self, raw, query):
        assert parse_intent(raw) == PolicyLookup(query)

    def test_unknown_tag(self):
        intent = parse_intent('{"intent": "book_flight", "to": "DXB"}')
        assert isinstance(intent, UnknownIntent)
        assert intent.intent == "book_flight"

    @pytest.mark.parametrize("raw", [
        "{", "}", "{{}}", '{"intent": 42}', '{"intent": null}', "```json\n```", "\x00\x01",
        '{"intent": ["query"]}',
    ])
    def test_total_on_odd_inputs(self, raw):
        intent = parse_intent(raw)
        assert isinstance(intent, (Conversation, UnknownIntent))
