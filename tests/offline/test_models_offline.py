#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import unittest

from autoregister.exceptions import (
    AuthenticationError,
    DiscoveryError,
    JobCancelledError,
    UserInputException,
    classify_error,
    describe_error,
)
from autoregister.models import CompletionBoard, LaunchRequest, RaceResult, Target, TargetOutcome
from requests.exceptions import ConnectionError


class LaunchRequestOfflineTest(unittest.TestCase):
    def test_from_dict(self):
        req = LaunchRequest.from_dict({
            "studentId": " 2021000000 ",
            "password": "pw",
            "targets": [{"courseCode": "CS101", "targetSection": "01"},
                        {"course_code": "MA201", "target_section": 2}],
            "mode": "Hybrid",
            "apiBaseUrlOverride": "https://alt.example.com",
        })
        self.assertEqual(req.student_id, "2021000000")
        self.assertEqual(req.targets, (Target("CS101", "01"), Target("MA201", "2")))
        self.assertEqual(req.mode, "hybrid")
        self.assertEqual(req.selected_courses(), {"CS101": "01", "MA201": "2"})
        self.assertNotIn("pw", repr(req))

    def test_invalid_requests(self):
        with self.assertRaises(UserInputException):
            LaunchRequest("", "pw", ())
        with self.assertRaises(UserInputException):
            LaunchRequest("u", "pw", (), mode="turbo")
        with self.assertRaises(UserInputException):
            Target.from_dict({"courseCode": "CS101"})


class RaceResultOfflineTest(unittest.TestCase):
    def test_success_needs_every_target(self):
        ok = TargetOutcome("CS101", True, "Registered")
        bad = TargetOutcome("MA201", False, "Exhausted")
        self.assertTrue(RaceResult((ok,)).success)
        self.assertFalse(RaceResult((ok, bad)).success)
        self.assertFalse(RaceResult(()).success)

    def test_from_bare_list(self):
        res = RaceResult.from_dict([{"course": "CS101", "success": True}, "junk"])
        self.assertEqual(res.per_target, (TargetOutcome("CS101", True, ""),))


class CompletionBoardOfflineTest(unittest.TestCase):
    def test_claim_once(self):
        board = CompletionBoard()
        t = Target("CS101", "01")
        self.assertTrue(board.claim(t))
        self.assertFalse(board.claim(t))
        self.assertTrue(board.is_completed(t))
        self.assertFalse(board.is_completed(Target("CS101", "02")))
        self.assertEqual(len(board), 1)


class ErrorTaxonomyOfflineTest(unittest.TestCase):
    def test_classify(self):
        self.assertEqual(classify_error(DiscoveryError()), "discovery")
        self.assertEqual(classify_error(AuthenticationError()), "auth")
        self.assertEqual(classify_error(JobCancelledError()), "cancelled")
        self.assertEqual(classify_error(UserInputException("x")), "input")
        self.assertEqual(classify_error(ConnectionError("reset")), "network")
        self.assertEqual(classify_error(KeyError("x")), "unknown")

    def test_describe(self):
        e = AuthenticationError(msg="bad password")
        self.assertEqual(str(e), "[102] bad password")
        self.assertEqual(describe_error(e), "bad password")
        self.assertEqual(describe_error(DiscoveryError()), "API discovery failed")


if __name__ == "__main__":
    unittest.main()
