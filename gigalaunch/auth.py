"""Player identity given to the game on its command line.
"""

from uuid import uuid3, NAMESPACE_X500

from typing import Optional


DEFAULT_USERNAME = "EngusMaze"


class AuthSession:
    """An abstract class for defining authentication sessions. These sessions are then
    provided as an argument for starting the game. They provide all information such as
    access player's token, username or UUID.
    """

    user_type: str

    def __init__(self) -> None:
        self.access_token = ""
        self.username = ""
        self.uuid = ""
        self.client_id = ""

    def get_xuid(self) -> str:
        """Xbox user id, only relevant to Microsoft sessions but common to all sessions
        because it's given on the game's command line.
        """
        return ""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.username}>"


class OfflineAuthSession(AuthSession):
    """Offline session, the game is started without any authentication. The UUID is
    derived from the username, as the game server does for offline players, unless a
    32 hexadecimal characters UUID is given.
    """

    user_type = "legacy"

    def __init__(self, username: Optional[str] = None, uuid: Optional[str] = None) -> None:
        super().__init__()
        self.username = DEFAULT_USERNAME if username is None else username[:16]
        if uuid is not None and len(uuid) == 32:
            self.uuid = uuid.lower()
        else:
            self.uuid = offline_uuid(self.username)


def offline_uuid(username: str) -> str:
    """Return the offline UUID of a player, formatted as 32 hexadecimal characters.
    """
    return uuid3(NAMESPACE_X500, f"OfflinePlayer:{username}").hex
