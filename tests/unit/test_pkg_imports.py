def test_import_package_and_version_smoke():
    import sfbulk

    # __version__ should be a string (may be dynamic via setuptools_scm)
    assert isinstance(sfbulk.__version__, str)
    assert sfbulk.SFBulkError is sfbulk.exceptions.SFBulkError


def test_library_logger_has_null_handler():
    import logging

    import sfbulk  # noqa: F401

    handlers = logging.getLogger("sfbulk").handlers
    assert any(isinstance(h, logging.NullHandler) for h in handlers)
