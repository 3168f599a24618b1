from courtslot.models import db
from courtslot.models.cart_transaction import CartTransaction
from courtslot.services import resolver


def test_grant_role(app, player):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["grant-role", player.email, "staff"])

    assert result.exit_code == 0
    assert "granted STAFF" in result.output
    assert player.role == "staff"


def test_grant_role_unknown_user(app):
    result = app.test_cli_runner().invoke(args=["grant-role", "ghost@example.com", "ADMIN"])
    assert "User not found" in result.output


def test_sweep_runs_every_expiry(app, court, player, slot, clock):
    cart_id = resolver.submit_reservation_request(player, slot(court, "09:00", "10:00")).cart.id
    clock.advance(hours=2)

    result = app.test_cli_runner().invoke(args=["sweep"])

    assert result.exit_code == 0
    assert "expire-carts: 1 expired, 0 promoted" in result.output
    assert "expire-transactions: 0 expired" in result.output
    assert "expire-waitlist: 0 expired" in result.output
    assert db.session.get(CartTransaction, cart_id).status == CartTransaction.STATUS_EXPIRED
