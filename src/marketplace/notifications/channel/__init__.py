"""Channel adapter registry for the app wiring and the retry worker.

Fake adapters are created on first use. A deployment installs its real
email and chat providers at startup with ``use_channel``.
"""

from importlib import import_module

from marketplace.notifications.notification import NotificationChannel

_FAKES = {
    NotificationChannel.EMAIL.value: ("marketplace.notifications.channel.fake_email", "FakeEmailAdapter"),
    NotificationChannel.CHAT.value: ("marketplace.notifications.channel.fake_chat", "FakeChatAdapter"),
}

_channel_instances: dict[str, object] = {}


def get_channel(channel_type: str):
    """Return the adapter for ``channel_type`` ("Email" or "Chat")."""
    if channel_type not in _channel_instances:
        if channel_type not in _FAKES:
            raise ValueError(f"Unknown channel type: {channel_type}")
        module_name, class_name = _FAKES[channel_type]
        _channel_instances[channel_type] = getattr(import_module(module_name), class_name)()
    return _channel_instances[channel_type]


def use_channel(channel_type: str, adapter) -> None:
    if channel_type not in _FAKES:
        raise ValueError(f"Unknown channel type: {channel_type}")
    _channel_instances[channel_type] = adapter


def reset_channels():
    _channel_instances.clear()
