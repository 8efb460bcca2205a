"""Input contract tests."""

import unittest

from errors import ValidationError
from validations import (
    sanitize_string,
    validate_collection_input,
    validate_collection_update,
    validate_feedback_request,
    validate_generation_request,
    validate_object_id,
    validate_pagination,
    validate_practice_session,
    validate_question_input,
    validate_question_update,
    validate_sign_in,
    validate_sign_up,
)

OBJECT_ID = 'a' * 24


def question_payload(**overrides):
    payload = {
        'title': 'Explain closures',
        'description': 'Describe what a closure is in JavaScript.',
        'difficulty': 'MEDIUM',
        'category': 'TECHNICAL',
        'tags': ['javascript', 'functions'],
    }
    payload.update(overrides)
    return payload


class SanitizeTest(unittest.TestCase):
    def test_trims_and_collapses_whitespace(self) -> None:
        self.assertEqual(sanitize_string('  a \n\t b  '), 'a b')

    def test_non_strings_pass_through(self) -> None:
        self.assertEqual(sanitize_string(5), 5)


class QuestionValidationTest(unittest.TestCase):
    def test_valid_question_is_normalized(self) -> None:
        validated = validate_question_input(question_payload(title='  Explain   closures  '))
        self.assertEqual(validated['title'], 'Explain closures')
        self.assertEqual(validated['tags'], ['javascript', 'functions'])
        self.assertNotIn('company_name', validated)

    def test_title_bounds(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_question_input(question_payload(title='abcd'))
        self.assertEqual(ctx.exception.details['title'], ['Title must be at least 5 characters'])

        with self.assertRaises(ValidationError) as ctx:
            validate_question_input(question_payload(title='x' * 201))
        self.assertEqual(ctx.exception.details['title'], ['Title must be less than 200 characters'])

        self.assertEqual(len(validate_question_input(question_payload(title='x' * 200))['title']), 200)

    def test_whitespace_collapse_applies_before_length(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_question_input(question_payload(title='ab      c'))
        self.assertIn('title', ctx.exception.details)

    def test_rejects_unknown_enums(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_question_input(question_payload(difficulty='EXTREME', category='TRIVIA'))
        self.assertEqual(ctx.exception.details['difficulty'], ['Invalid difficulty level'])
        self.assertEqual(ctx.exception.details['category'], ['Invalid category'])

    def test_tag_rules(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_question_input(question_payload(tags=[f't{i}' for i in range(11)]))
        self.assertEqual(ctx.exception.details['tags'], ['Maximum 10 tags allowed'])

        with self.assertRaises(ValidationError) as ctx:
            validate_question_input(question_payload(tags=['x' * 31]))
        self.assertEqual(ctx.exception.details['tags'], ['Tags must be at most 30 characters'])

    def test_comma_separated_tags(self) -> None:
        validated = validate_question_input(question_payload(tags='react, hooks ,,state'))
        self.assertEqual(validated['tags'], ['react', 'hooks', 'state'])

    def test_missing_fields_are_reported(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_question_input({})
        self.assertEqual(
            set(ctx.exception.details),
            {'title', 'description', 'difficulty', 'category'},
        )
        self.assertEqual(ctx.exception.details['title'], ['Title is required'])

    def test_company_id_must_be_object_id(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_question_input(question_payload(company_id='nope'))
        self.assertEqual(ctx.exception.details['company_id'], ['Invalid company ID'])

    def test_partial_update(self) -> None:
        self.assertEqual(validate_question_update({'title': 'New title here'}), {'title': 'New title here'})

    def test_empty_update_is_rejected(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_question_update({})
        self.assertEqual(ctx.exception.message, 'Nothing to update')


class CollectionValidationTest(unittest.TestCase):
    def test_valid_collection(self) -> None:
        validated = validate_collection_input({'name': 'Frontend', 'color': '#3B82F6'})
        self.assertEqual(validated, {'name': 'Frontend', 'color': '#3B82F6'})

    def test_bad_color(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_collection_input({'name': 'Frontend', 'color': 'blue'})
        self.assertEqual(ctx.exception.details['color'], ['Invalid hex color (e.g., #3B82F6)'])

    def test_update_ignores_unknown_fields(self) -> None:
        self.assertEqual(
            validate_collection_update({'description': 'Later', 'question_ids': ['x']}),
            {'description': 'Later'},
        )


class AuthValidationTest(unittest.TestCase):
    def test_sign_up_lowercases_email(self) -> None:
        validated = validate_sign_up({'email': 'Ada@Example.COM', 'password': 'Secret123', 'name': 'Ada'})
        self.assertEqual(validated['email'], 'ada@example.com')
        self.assertEqual(validated['password'], 'Secret123')

    def test_password_strength(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_sign_up({'email': 'ada@example.com', 'password': 'secret123'})
        self.assertEqual(ctx.exception.details['password'], ['Password must contain uppercase letter'])

        with self.assertRaises(ValidationError) as ctx:
            validate_sign_up({'email': 'ada@example.com', 'password': 'Sh0rt'})
        self.assertEqual(ctx.exception.details['password'], ['Password must be at least 8 characters'])

    def test_password_is_not_sanitized(self) -> None:
        validated = validate_sign_in({'email': 'ada@example.com', 'password': ' Pass  word1 '})
        self.assertEqual(validated['password'], ' Pass  word1 ')

    def test_invalid_email(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_sign_up({'email': 'not-an-email', 'password': 'Secret123'})
        self.assertEqual(ctx.exception.details['email'], ['Invalid email address'])


class MiscValidationTest(unittest.TestCase):
    def test_pagination_defaults_and_coercion(self) -> None:
        self.assertEqual(validate_pagination(None), {'page': 1, 'limit': 20})
        self.assertEqual(validate_pagination({'page': '3', 'limit': '50'}), {'page': 3, 'limit': 50})

    def test_non_object_payloads_are_rejected(self) -> None:
        for payload in ([1, 2], 'title', 42):
            with self.assertRaises(ValidationError) as ctx:
                validate_question_input(payload)
            self.assertEqual(ctx.exception.details, {'__all__': ['Request body must be a JSON object']})

    def test_pagination_bounds(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_pagination({'page': 0, 'limit': 101})
        self.assertEqual(ctx.exception.details['page'], ['Page must be positive'])
        self.assertEqual(ctx.exception.details['limit'], ['Max 100 items per page'])

    def test_practice_session(self) -> None:
        validated = validate_practice_session({
            'question_id': OBJECT_ID,
            'answer': 'A closure captures variables.',
            'duration': 120,
            'rating': 4,
        })
        self.assertEqual(validated['duration'], 120)

        with self.assertRaises(ValidationError) as ctx:
            validate_practice_session({'question_id': 'bad', 'answer': 'short', 'duration': 0, 'rating': 6})
        self.assertEqual(
            set(ctx.exception.details),
            {'question_id', 'answer', 'duration', 'rating'},
        )

    def test_object_id(self) -> None:
        self.assertEqual(validate_object_id(OBJECT_ID, 'question_id'), OBJECT_ID)
        with self.assertRaises(ValidationError) as ctx:
            validate_object_id('123', 'question_id')
        self.assertEqual(ctx.exception.details, {'question_id': ['Invalid question id']})

    def test_feedback_request(self) -> None:
        self.assertEqual(
            validate_feedback_request('  What is  REST? ', ' It is a style. '),
            {'question': 'What is REST?', 'answer': 'It is a style.'},
        )
        with self.assertRaises(ValidationError) as ctx:
            validate_feedback_request('', 'x' * 5001)
        self.assertEqual(set(ctx.exception.details), {'question', 'answer'})

    def test_generation_request(self) -> None:
        self.assertEqual(
            validate_generation_request('React hooks', 'easy', '3'),
            {'topic': 'React hooks', 'difficulty': 'EASY', 'count': 3},
        )
        for count in (0, 11, True, 'many'):
            with self.assertRaises(ValidationError):
                validate_generation_request('React hooks', 'EASY', count)


if __name__ == '__main__':
    unittest.main()
