"""HTML pages shown after clicking a verification or password-reset link."""

import html


def verification_success_page(email: str, redirect_url: str, delay_seconds: int = 10) -> str:
    safe_email = html.escape(email)
    safe_url = html.escape(redirect_url, quote=True)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <meta http-equiv="refresh" content="{int(delay_seconds)};url={safe_url}" />
  <title>Email Verified Successfully</title>
  <style>
    body {{ font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); min-height: 100vh; display: flex; align-items: center; justify-content: center; padding: 20px; margin: 0; }}
    .container {{ background: #fff; border-radius: 20px; box-shadow: 0 20px 40px rgba(0,0,0,.1); padding: 60px 40px; text-align: center; max-width: 560px; width: 100%; }}
    .icon {{ width: 80px; height: 80px; background: #4CAF50; color: #fff; border-radius: 50%; font-size: 40px; line-height: 80px; margin: 0 auto 30px; }}
    h1 {{ color: #333; font-size: 32px; margin-bottom: 20px; }}
    .email {{ background: #f8f9fa; border: 2px solid #e9ecef; border-radius: 10px; padding: 15px; margin: 20px 0; font-weight: 600; word-break: break-all; }}
    .cta {{ background: linear-gradient(135deg,#667eea,#764ba2); color: #fff; padding: 15px 30px; border-radius: 50px; text-decoration: none; display: inline-block; margin-top: 20px; }}
    .footer {{ color: #999; font-size: 14px; margin-top: 30px; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="icon">&#10003;</div>
    <h1>Email Verified</h1>
    <p>Your email has been verified and your account is now active.</p>
    <div class="email">{safe_email}</div>
    <a href="{safe_url}" class="cta">Continue</a>
    <p class="footer">You will be redirected in {int(delay_seconds)} seconds.</p>
  </div>
</body>
</html>"""


def verification_error_page(retry_url: str, support_url: str) -> str:
    safe_retry = html.escape(retry_url, quote=True)
    safe_support = html.escape(support_url, quote=True)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>Verification Failed</title>
  <style>
    body {{ font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; background: linear-gradient(135deg, #ff6b6b 0%, #ee5a24 100%); min-height: 100vh; display: flex; align-items: center; justify-content: center; padding: 20px; margin: 0; }}
    .container {{ background: #fff; border-radius: 20px; box-shadow: 0 20px 40px rgba(0,0,0,.1); padding: 60px 40px; text-align: center; max-width: 560px; width: 100%; }}
    .icon {{ width: 80px; height: 80px; background: #ee5a24; color: #fff; border-radius: 50%; font-size: 40px; line-height: 80px; margin: 0 auto 30px; }}
    h1 {{ color: #333; font-size: 32px; margin-bottom: 20px; }}
    .details {{ background: #fff0f0; border-left: 4px solid #ff6b6b; border-radius: 8px; padding: 20px; margin: 30px 0; text-align: left; color: #e17055; }}
    .cta {{ padding: 12px 25px; border-radius: 50px; text-decoration: none; display: inline-block; margin: 0 8px; }}
    .primary {{ background: linear-gradient(135deg,#667eea,#764ba2); color: #fff; }}
    .secondary {{ background: #f8f9fa; color: #495057; border: 2px solid #e9ecef; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="icon">&#10005;</div>
    <h1>Verification Failed</h1>
    <p>We couldn't verify your email address. The link may have expired or is invalid.</p>
    <div class="details">
      <p>The verification token may have expired (tokens are valid for 24 hours).</p>
      <p>The link may have been used already.</p>
      <p>The email address might not match our records.</p>
    </div>
    <a href="{safe_retry}" class="cta primary">Try Again</a>
    <a href="{safe_support}" class="cta secondary">Contact Support</a>
  </div>
</body>
</html>"""


def reset_password_form_page(email: str, token: str, action_url: str) -> str:
    """Form posting the link token to the reset endpoint; the token is only consumed on submit."""
    safe_email = html.escape(email, quote=True)
    safe_token = html.escape(token, quote=True)
    safe_action = html.escape(action_url, quote=True)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>Reset Password</title>
  <style>
    body {{ font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); min-height: 100vh; display: flex; align-items: center; justify-content: center; padding: 20px; margin: 0; }}
    .container {{ background: #fff; border-radius: 20px; box-shadow: 0 20px 40px rgba(0,0,0,.1); padding: 50px 40px; max-width: 480px; width: 100%; }}
    h1 {{ color: #333; font-size: 28px; margin-bottom: 10px; text-align: center; }}
    .email {{ text-align: center; color: #666; margin-bottom: 25px; word-break: break-all; }}
    label {{ display: block; font-weight: 600; margin: 15px 0 6px; color: #495057; }}
    input[type=password] {{ width: 100%; box-sizing: border-box; padding: 12px; border: 2px solid #e9ecef; border-radius: 10px; font-size: 16px; }}
    button {{ width: 100%; margin-top: 25px; background: linear-gradient(135deg,#667eea,#764ba2); color: #fff; border: none; padding: 14px; border-radius: 50px; font-size: 16px; cursor: pointer; }}
    #status {{ margin-top: 20px; text-align: center; min-height: 1.5em; }}
    .ok {{ color: #2e7d32; }}
    .fail {{ color: #e17055; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>Reset Password</h1>
    <p class="email">{safe_email}</p>
    <form id="reset-form" data-action="{safe_action}">
      <input type="hidden" name="email" value="{safe_email}" />
      <input type="hidden" name="token" value="{safe_token}" />
      <label for="password">New password</label>
      <input type="password" id="password" name="password" autocomplete="new-password" required />
      <label for="confirm_password">Confirm password</label>
      <input type="password" id="confirm_password" name="confirm_password" autocomplete="new-password" required />
      <button type="submit">Reset Password</button>
    </form>
    <p id="status"></p>
  </div>
  <script>
    const form = document.getElementById("reset-form");
    const status = document.getElementById("status");
    form.addEventListener("submit", async (event) => {{
      event.preventDefault();
      const body = Object.fromEntries(new FormData(form).entries());
      const response = await fetch(form.dataset.action, {{
        method: "PATCH",
        headers: {{ "Content-Type": "application/json" }},
        body: JSON.stringify(body),
      }});
      const payload = await response.json().catch(() => ({{}}));
      status.className = response.ok ? "ok" : "fail";
      status.textContent = payload.message || (response.ok ? "Password reset successfully" : "Password reset failed");
      if (response.ok) form.remove();
    }});
  </script>
</body>
</html>"""
