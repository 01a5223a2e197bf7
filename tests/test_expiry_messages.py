"""Unit tests for expiry reminder content."""

from datetime import datetime, timezone

from gymcore.notifications.expiry_messages import build_expiry_message, format_expiry_date

IST = "Asia/Kolkata"

MEMBER = {
    "_id": "m1",
    "firstName": "Asha",
    "lastName": "Rao",
    "currentPlan": {"planName": "Quarterly Gold"},
}
ORGANIZATION = {"name": "Iron Temple Fitness", "phone": "+91 98765 43210", "email": "desk@irontemple.in"}
END_DATE = datetime(2024, 1, 4, 18, 30, tzinfo=timezone.utc)  # 2024-01-05 00:00 IST


class TestExpiryMessage:
    def test_date_is_formatted_in_local_time(self):
        assert format_expiry_date(END_DATE, IST) == "05/01/2024"

    def test_upcoming_family(self):
        message = build_expiry_message(MEMBER, ORGANIZATION, END_DATE, 3, IST)

        assert not message.expired
        assert message.subject == "Your Quarterly Gold Expires in 3 Days"
        assert message.sms_text == (
            "Hi Asha Rao, your Quarterly Gold expires in 3 days (05/01/2024). "
            "Please renew to avoid interruption."
        )
        assert "Call us: +91 98765 43210" in message.text

    def test_single_day_is_singular(self):
        message = build_expiry_message(MEMBER, ORGANIZATION, END_DATE, 1, IST)

        assert "expires in 1 day " in message.sms_text
        assert message.subject.endswith("1 Day")

    def test_expired_family(self):
        message = build_expiry_message(MEMBER, ORGANIZATION, END_DATE, 0, IST)

        assert message.expired
        assert message.heading == "Membership Expired"
        assert message.subject == "Your Quarterly Gold has Expired - Iron Temple Fitness"
        assert message.sms_text.startswith("Hi Asha Rao, your Quarterly Gold has expired on 05/01/2024.")

    def test_renewal_link_in_whatsapp_and_email(self):
        link = "https://app.example.com/members/m1?renew=true"

        message = build_expiry_message(MEMBER, ORGANIZATION, END_DATE, 7, IST, renewal_link=link)

        assert f"Renew now: {link}" in message.whatsapp_text
        assert link.replace("&", "&amp;") in message.html

    def test_missing_plan_and_names_fall_back(self):
        message = build_expiry_message({"_id": "m2"}, {}, END_DATE, 7, IST)

        assert message.subject == "Your Membership Expires in 7 Days"
        assert message.text.endswith("Gym Management")

    def test_html_escapes_member_name(self):
        member = {**MEMBER, "firstName": "<b>Eve</b>"}

        message = build_expiry_message(member, ORGANIZATION, END_DATE, 3, IST)

        assert "<b>Eve</b>" not in message.html
        assert "&lt;b&gt;Eve&lt;/b&gt;" in message.html
