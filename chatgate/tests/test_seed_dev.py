import sys

from chatgate.features.users.service import get_user
from chatgate.scripts import seed_dev


def test_seed_dev_creates_admin(monkeypatch, capsys):
    monkeypatch.setattr(seed_dev, "configure_logging", lambda env: None)
    monkeypatch.setattr(sys, "argv", ["seed_dev", "--admin-user-id", "ops", "--email", "ops@example.com"])

    seed_dev.main()
    # Running twice keeps a single admin row
    seed_dev.main()

    user = get_user("ops")
    assert user.is_admin
    assert user.subscription_type_id == 3
    assert "Enterprise" in capsys.readouterr().out
