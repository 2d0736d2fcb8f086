import json
import tempfile
import unittest
from pathlib import Path

from courseven.core.audit import AuditLogger
from courseven.core.config import (
    ClientConfig,
    RobleConfig,
    load_client_config,
    normalise_database_url,
)
from courseven.core.errors import (
    DuplicateAssessmentError,
    RemoteError,
    UnsupportedOperationError,
    ValidationFailure,
    error_message,
    extract_error_message,
)
from courseven.core.events import AppEventBus, EnrollmentJoinedEvent, MembershipJoinedEvent


class ConfigParsingTests(unittest.TestCase):
    def _write_yaml(self, data: str) -> Path:
        tmp = tempfile.NamedTemporaryFile("w", delete=False, suffix=".yaml")
        tmp.write(data)
        tmp.flush()
        tmp.close()
        self.addCleanup(lambda: Path(tmp.name).unlink(missing_ok=True))
        return Path(tmp.name)

    def test_load_client_config(self) -> None:
        path = self._write_yaml(
            """
            roble:
              auth_base_url: https://roble.example/auth/
              database_base_url: https://roble.example/database/courseven_x/read
              database_name: courseven_x
            refresh:
              home_ttl_ms: 1000
            max_courses_per_teacher: 5
            """
        )
        config = load_client_config(path, environ={})
        self.assertIsInstance(config, ClientConfig)
        self.assertEqual(config.roble.auth_base_url, "https://roble.example/auth")
        self.assertEqual(config.roble.database_base_url, "https://roble.example/database")
        self.assertEqual(config.roble.database_fallback_base, "https://roble.example")
        self.assertEqual(config.refresh.home_ttl_ms, 1000)
        self.assertEqual(config.refresh.student_activities_ttl_ms, 60_000)
        self.assertEqual(config.max_courses_per_teacher, 5)

    def test_flat_roble_keys_are_promoted(self) -> None:
        path = self._write_yaml(
            """
            database_name: legacy_db
            readonly_email: ro@example.com
            readonly_password: secret
            """
        )
        config = load_client_config(path, environ={})
        self.assertEqual(config.roble.database_name, "legacy_db")
        self.assertTrue(config.roble.has_readonly_credentials)

    def test_environment_overrides_file_values(self) -> None:
        path = self._write_yaml("roble:\n  database_name: from_file\n")
        config = load_client_config(
            path,
            environ={
                "ROBLE_DB_NAME": "from_env",
                "ROBLE_TIMEOUT": "7.5",
                "COURSEVEN_SESSION_PATH": "/tmp/courseven-session.json",
            },
        )
        self.assertEqual(config.roble.database_name, "from_env")
        self.assertEqual(config.roble.timeout, 7.5)
        self.assertEqual(config.session.path, Path("/tmp/courseven-session.json"))

    def test_defaults_without_file(self) -> None:
        config = load_client_config(None, environ={})
        self.assertEqual(config.max_courses_per_teacher, 3)
        self.assertIsNone(config.audit_log)
        self.assertFalse(config.roble.has_readonly_credentials)

    def test_invalid_config_names_its_source(self) -> None:
        path = self._write_yaml("max_courses_per_teacher: 0\n")
        with self.assertRaises(ValueError) as ctx:
            load_client_config(path, environ={})
        self.assertIn(str(path.resolve()), str(ctx.exception))

    def test_blank_database_name_rejected(self) -> None:
        with self.assertRaises(ValueError):
            RobleConfig(database_name="  ")

    def test_normalise_database_url_appends_segment(self) -> None:
        self.assertEqual(normalise_database_url("https://api.example/"), "https://api.example/database")


class ErrorTests(unittest.TestCase):
    def test_remote_error_message(self) -> None:
        error = RemoteError("course", 500, "boom")
        self.assertEqual(str(error), "Database error (course) - status 500: boom")
        self.assertEqual(str(RemoteError(None, 401)), "Remote error - status 401")

    def test_duplicate_assessment_is_validation_failure(self) -> None:
        error = DuplicateAssessmentError("a1", "r1", "s1")
        self.assertIsInstance(error, ValidationFailure)
        self.assertEqual(error.student_id, "s1")

    def test_unsupported_operation(self) -> None:
        self.assertEqual(str(UnsupportedOperationError("deleteGroup")), "deleteGroup is not supported")

    def test_extract_error_message(self) -> None:
        self.assertEqual(extract_error_message({"message": "nope"}), "nope")
        self.assertEqual(extract_error_message({"detail": "missing"}), "missing")
        self.assertIsNone(extract_error_message(["not", "a", "dict"]))
        self.assertIsNone(extract_error_message({"message": ""}))

    def test_error_message_fallbacks(self) -> None:
        self.assertEqual(error_message(None), "Unknown error")
        self.assertEqual(error_message(""), "Unknown error")
        self.assertEqual(error_message(KeyError()), "KeyError")


class AuditLoggerTests(unittest.TestCase):
    def test_log_event(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = AuditLogger(Path(tmpdir) / "audit.jsonl")
            event = logger.log({"event": "unit-test", "payload": {"ok": True}})
            self.assertEqual(event.actor, "anonymous")
            contents = (Path(tmpdir) / "audit.jsonl").read_text().strip()
            data = json.loads(contents)
            self.assertEqual(data["event"], "unit-test")

    def test_attach_records_bus_events_with_actor(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            logger = AuditLogger(Path(tmpdir) / "nested" / "audit.jsonl", actor=lambda: "user-7")
            bus = AppEventBus()
            detach = logger.attach(bus)
            bus.publish(EnrollmentJoinedEvent(course_id="c1"))
            bus.publish(MembershipJoinedEvent(group_id="g1", course_id="c1"))
            detach()
            bus.publish(EnrollmentJoinedEvent(course_id="c2"))

            events = logger.read()
            self.assertEqual([event.event for event in events], ["EnrollmentJoined", "MembershipJoined"])
            self.assertEqual(events[0].actor, "user-7")
            self.assertEqual(events[1].payload, {"group_id": "g1", "course_id": "c1"})


if __name__ == "__main__":
    unittest.main()
