from enum import StrEnum


class Visibility(StrEnum):
    PUBLIC = "public"
    PRIVATE = "private"
    FOLLOWERS = "followers"


class MediaType(StrEnum):
    IMAGE = "image"
    VIDEO = "video"


class TagCategory(StrEnum):
    BRAND = "brand"
    CATEGORY = "category"
    YEAR = "year"
    RARITY = "rarity"
    COLOR = "color"
    SIZE = "size"
    GENERAL = "general"


class CollectionCategory(StrEnum):
    SNEAKERS = "sneakers"
    WATCHES = "watches"
    LUXURY = "luxury"
    ART = "art"
    CARS = "cars"
    JEWELRY = "jewelry"
    OTHER = "other"
