import unittest

from visitor_beacon.clock import FakeClock, iso_ms
from visitor_beacon.events import WIRE_TYPE, EventFactory, FocusChange, TrackExit
from visitor_beacon.identity import VisitorIdentity
from visitor_beacon.page import FormInfo, HeadlessPage, LinkInfo


def _factory(**page_kwargs):
    clock = FakeClock(start_ms=1_714_557_600_000)  # 2024-05-01T10:00:00Z
    page = HeadlessPage(
        url="https://expo.example.com/landing",
        title="Expo",
        user_agent="UA/1.0",
        language="en-GB",
        screen_width=1440,
        screen_height=900,
        timezone="Europe/London",
        **page_kwargs,
    )
    ident = VisitorIdentity(visitor_id="visitor_abc", session_id="session_1_x", is_new_visitor=True, session_start_ms=clock.now_ms())
    return EventFactory(ident, page, clock), clock, page


class TestWireShape(unittest.TestCase):
    def test_iso_timestamp_format(self):
        self.assertEqual(iso_ms(1_714_557_600_000), "2024-05-01T10:00:00.000Z")
        self.assertEqual(iso_ms(1_714_557_600_007), "2024-05-01T10:00:00.007Z")

    def test_track_visit_payload(self):
        factory, _, _ = _factory()
        wire = factory.track_visit().to_wire()
        self.assertEqual(
            wire,
            {
                "type": WIRE_TYPE,
                "action": "track_visit",
                "sessionId": "session_1_x",
                "timestamp": "2024-05-01T10:00:00.000Z",
                "visitorId": "visitor_abc",
                "referrer": "direct",
                "url": "https://expo.example.com/landing",
                "pageTitle": "Expo",
                "isNewVisitor": True,
                "userAgent": "UA/1.0",
                "language": "en-GB",
                "screenResolution": "1440x900",
                "timezone": "Europe/London",
            },
        )

    def test_page_load_adds_timing(self):
        factory, _, _ = _factory(load_ms=812.5, connection_type="4g")
        wire = factory.page_load().to_wire()
        self.assertEqual(wire["action"], "page_load")
        self.assertEqual(wire["loadTime"], 812.5)
        self.assertEqual(wire["connectionType"], "4g")
        self.assertTrue(wire["isNewVisitor"])

    def test_referrer_is_kept_when_present(self):
        factory, _, _ = _factory(referrer="https://news.example.org/")
        self.assertEqual(factory.scroll_depth(25).to_wire()["referrer"], "https://news.example.org/")

    def test_link_click_internal_and_external(self):
        factory, _, _ = _factory()
        internal = factory.link_click(LinkInfo(href="https://expo.example.com/register", text="  Register  ")).to_wire()
        self.assertEqual(internal["linkText"], "Register")
        self.assertEqual(internal["linkTarget"], "_self")
        self.assertFalse(internal["isExternal"])

        external = factory.link_click(LinkInfo(href="https://other.example.net/", text="x", target="_blank")).to_wire()
        self.assertTrue(external["isExternal"])
        self.assertEqual(external["linkTarget"], "_blank")

    def test_form_defaults(self):
        factory, _, _ = _factory()
        wire = factory.form_submission(FormInfo(action="/signup", method="post")).to_wire()
        self.assertEqual(wire["action"], "form_submission")
        self.assertEqual(wire["formId"], "unnamed")
        self.assertEqual(wire["formAction"], "/signup")
        self.assertEqual(wire["formMethod"], "post")
        self.assertEqual(wire["formClass"], "")

    def test_focus_and_blur_actions(self):
        factory, _, _ = _factory()
        focus = factory.focus_change(True)
        blur = factory.focus_change(False)
        self.assertIsInstance(focus, FocusChange)
        self.assertEqual(focus.to_wire()["action"], "page_focus")
        self.assertEqual(blur.to_wire()["action"], "page_blur")
        self.assertIs(blur.to_wire()["hasFocus"], False)

    def test_time_events(self):
        factory, _, _ = _factory()
        self.assertEqual(factory.time_on_page(30).to_wire()["action"], "time_on_page")
        exit_wire = factory.time_on_page(42, is_exit=True).to_wire()
        self.assertEqual(exit_wire["action"], "page_exit")
        self.assertEqual(exit_wire["timeSpent"], 42)

    def test_session_events_have_no_visitor_or_page(self):
        factory, clock, _ = _factory()
        clock.advance(90.9)
        wire = factory.update_session().to_wire()
        self.assertEqual(
            wire,
            {
                "type": WIRE_TYPE,
                "action": "update_session",
                "sessionId": "session_1_x",
                "timestamp": "2024-05-01T10:01:30.900Z",
                "duration": 90,
            },
        )
        exit_event = factory.track_exit()
        self.assertIsInstance(exit_event, TrackExit)
        self.assertEqual(exit_event.to_wire()["duration"], 90)
        self.assertNotIn("visitorId", factory.track_return().to_wire())

    def test_interaction(self):
        factory, _, _ = _factory()
        wire = factory.interaction("click", 15).to_wire()
        self.assertEqual(wire["action"], "track_interaction")
        self.assertEqual(wire["interactionType"], "click")
        self.assertEqual(wire["interactionCount"], 15)

    def test_events_are_immutable(self):
        factory, _, _ = _factory()
        event = factory.scroll_depth(50)
        with self.assertRaises(Exception):
            event.scroll_percent = 75  # type: ignore[misc]


if __name__ == "__main__":
    unittest.main()
