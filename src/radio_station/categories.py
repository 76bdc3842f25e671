"""Content categories and the role each plays in transitions."""

from enum import Enum


class Category(str, Enum):
    """A slot type in the looping schedule pattern."""

    MUSIC = "music"
    AD = "ad"
    DJ = "dj"
    INTRO = "intro"
    STATION_ID = "id"
    PODCAST = "podcast"
    TRANSITION = "segway"

    def __str__(self) -> str:
        return self.value


class TransitionRole(Enum):
    """How a category is treated when planning spoken transitions."""

    MUSIC = "music"
    ADVERT = "advert"
    IDENT = "ident"
    TALK = "talk"
    FEATURE = "feature"
    TRANSITION = "transition"


CATEGORY_ROLES: dict[Category, TransitionRole] = {
    Category.MUSIC: TransitionRole.MUSIC,
    Category.AD: TransitionRole.ADVERT,
    Category.DJ: TransitionRole.TALK,
    Category.INTRO: TransitionRole.IDENT,
    Category.STATION_ID: TransitionRole.IDENT,
    Category.PODCAST: TransitionRole.FEATURE,
    Category.TRANSITION: TransitionRole.TRANSITION,
}


def role_of(category: Category) -> TransitionRole:
    return CATEGORY_ROLES[Category(category)]


def is_transition(category: Category) -> bool:
    return role_of(category) is TransitionRole.TRANSITION
