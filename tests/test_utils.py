import pytest

from covenant.engines.flask import FlaskEngine
from covenant.utils import fully_qualified_name
from covenant.utils.importlib import import_from_string


def test_fully_qualified_name():
    assert fully_qualified_name(FlaskEngine) == "covenant.engines.flask.FlaskEngine"


class TestImportFromString:
    def test_imports_attribute(self):
        assert import_from_string("covenant.engines.flask.FlaskEngine") is FlaskEngine

    @pytest.mark.parametrize(
        "dotted_path",
        ["FlaskEngine", "covenant.engines.nowhere.Engine", "covenant.engines.flask.Nope"],
    )
    def test_failures(self, dotted_path):
        with pytest.raises(ImportError) as exc:
            import_from_string(dotted_path)

        assert dotted_path in str(exc.value)
