import marshmallow as ma
import pytest

from covenant.exceptions import (
    ConfigurationError,
    InputValidationError,
    OutputContractViolation,
)
from covenant.schema import load_input, resolve_schema, validate_output
from tests.support.contracts import GreetingSchema, NameSchema


class TestResolveSchema:
    def test_instance(self):
        schema = NameSchema()

        assert resolve_schema(schema) is schema

    def test_class(self):
        assert isinstance(resolve_schema(NameSchema), NameSchema)

    def test_dict_of_fields(self):
        schema = resolve_schema({"name": ma.fields.String(required=True)})

        assert schema.load({"name": "world"}) == {"name": "world"}

    @pytest.mark.parametrize("schema", ["NameSchema", 42, ma.fields.String()])
    def test_invalid(self, schema):
        with pytest.raises(ConfigurationError):
            resolve_schema(schema)


class TestLoadInput:
    def test_no_schema_passes_data_through(self):
        data = {"anything": object()}

        assert load_input(None, data) is data

    def test_loads(self):
        assert load_input(NameSchema, {"name": "world"}) == {"name": "world"}

    def test_field_errors(self):
        with pytest.raises(InputValidationError) as exc:
            load_input(NameSchema, {})

        assert exc.value.messages == {"name": ["Missing data for required field."]}

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(InputValidationError) as exc:
            load_input(NameSchema, {"name": "world", "age": 3})

        assert "age" in exc.value.messages

    def test_non_mapping_input(self):
        with pytest.raises(InputValidationError) as exc:
            load_input(NameSchema, '{"name": ')

        assert exc.value.messages == {"_schema": ["Invalid input type."]}


class TestValidateOutput:
    def test_no_schema(self):
        assert validate_output(None, object()) is None

    def test_valid(self):
        assert validate_output(GreetingSchema, {"greeting": "Hello"}) is None

    def test_extra_fields_are_ignored(self):
        assert validate_output(GreetingSchema, {"greeting": "Hi", "extra": 1}) is None

    def test_mismatch(self):
        with pytest.raises(OutputContractViolation) as exc:
            validate_output(GreetingSchema, {"salutation": "Hello"})

        assert exc.value.extra_info == {"greeting": ["Missing data for required field."]}
