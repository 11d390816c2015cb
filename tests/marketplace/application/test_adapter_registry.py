import pytest

from marketplace.notifications.channel import get_channel, use_channel
from marketplace.notifications.channel.fake_chat import FakeChatAdapter
from marketplace.notifications.channel.fake_email import FakeEmailAdapter
from marketplace.shipping.carrier import get_carrier, use_carrier
from marketplace.shipping.carrier.fake_adapter import FakeCarrier


class TestChannelRegistry:
    def test_fakes_by_default(self):
        assert isinstance(get_channel("Email"), FakeEmailAdapter)
        assert isinstance(get_channel("Chat"), FakeChatAdapter)

    def test_adapters_are_singletons(self):
        assert get_channel("Email") is get_channel("Email")

    def test_installed_adapter_replaces_the_fake(self):
        provider = FakeEmailAdapter()
        use_channel("Email", provider)

        assert get_channel("Email") is provider

    def test_unknown_channel(self):
        with pytest.raises(ValueError):
            get_channel("Pigeon")
        with pytest.raises(ValueError):
            use_channel("Pigeon", object())


class TestCarrierRegistry:
    def test_fake_by_default(self, monkeypatch):
        monkeypatch.delenv("CARRIER_ADAPTER", raising=False)
        assert isinstance(get_carrier(), FakeCarrier)

    def test_installed_carrier(self):
        carrier = FakeCarrier()
        use_carrier(carrier)

        assert get_carrier() is carrier

    def test_unknown_adapter_name(self, monkeypatch):
        monkeypatch.setenv("CARRIER_ADAPTER", "pigeon-post")
        with pytest.raises(ValueError):
            get_carrier()
