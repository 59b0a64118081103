from __future__ import annotations

from datetime import datetime, timezone

import jinja2


_env = jinja2.Environment(
    loader=jinja2.DictLoader(
        {
            "otp.html": """\
<div style="font-family: Arial, sans-serif; background: #f4f6f8; padding: 20px;">
  <div style="max-width: 500px; margin: auto; background: #ffffff; border-radius: 10px; padding: 20px;">
    <h2 style="text-align: center; color: #4F46E5;">AI DocAnalyzer</h2>
    <p style="font-size: 16px; color: #333;">Hi <b>{{ email }}</b>,</p>
    <p style="font-size: 16px; color: #333;">
      Use the following One-Time Password (OTP) to complete your verification:
    </p>
    <div style="text-align: center; margin: 20px 0;">
      <span style="display: inline-block; background: #4F46E5; color: #fff; font-size: 24px; letter-spacing: 5px; padding: 12px 20px; border-radius: 8px; font-weight: bold;">{{ code }}</span>
    </div>
    <p style="font-size: 14px; color: #555;">
      This OTP is valid for <b>{{ ttl_minutes }} minutes</b>. Please do not share it with anyone.
    </p>
    <p style="font-size: 12px; color: #999; text-align: center;">&copy; {{ year }} AI DocAnalyzer. All rights reserved.</p>
  </div>
</div>
""",
            "password_reset.html": """\
<div style="font-family: Arial, sans-serif; background: #f4f6f8; padding: 20px;">
  <div style="max-width: 500px; margin: auto; background: #ffffff; border-radius: 10px; padding: 20px;">
    <h2 style="text-align: center; color: #4F46E5;">AI DocAnalyzer</h2>
    <p style="font-size: 16px; color: #333;">Hi <b>{{ email }}</b>,</p>
    <p style="font-size: 16px; color: #333;">We received a request to reset your password.</p>
    <p style="text-align: center; margin: 20px 0;"><a href="{{ reset_url }}">Reset your password</a></p>
    <p style="font-size: 14px; color: #555;">
      This link expires in <b>{{ ttl_minutes }} minutes</b>. If you did not ask for it, ignore this email.
    </p>
    <p style="font-size: 12px; color: #999; text-align: center;">&copy; {{ year }} AI DocAnalyzer. All rights reserved.</p>
  </div>
</div>
""",
        }
    ),
    autoescape=True,
)

OTP_SUBJECT = "Your OTP Code - AI DocAnalyzer"
PASSWORD_RESET_SUBJECT = "Reset your password - AI DocAnalyzer"


def _year() -> int:
    return datetime.now(timezone.utc).year


def render_otp_email(*, email: str, code: str, ttl_minutes: int) -> str:
    return _env.get_template("otp.html").render(
        email=email, code=code, ttl_minutes=ttl_minutes, year=_year()
    )


def render_password_reset_email(*, email: str, reset_url: str, ttl_minutes: int) -> str:
    return _env.get_template("password_reset.html").render(
        email=email, reset_url=reset_url, ttl_minutes=ttl_minutes, year=_year()
    )
