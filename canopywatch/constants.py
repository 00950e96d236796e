"""
Fixed values shared by the diff engine and the feed client.
"""

# Classification thresholds for mask pixels. A pixel is forest when it is
# strongly green and weak in red and blue.
FOREST_MIN_GREEN = 200
FOREST_MAX_RED = 100
FOREST_MAX_BLUE = 100

# RGBA encoding of the diff raster, keyed by ChangeCategory value.
CATEGORY_COLORS = {
    "loss": (255, 0, 0, 150),
    "gain": (0, 255, 0, 150),
    "stable_forest": (128, 128, 128, 255),
    "stable_non_forest": (0, 0, 0, 255),
}

# Monitored areas: display name -> region key understood by the feed.
AREA_FEED_KEYS = {
    "Ba Vì": "BaVi",
    "Sóc Sơn": "SocSon",
    "Mỹ Đức": "MyDuc",
    "Chương Mĩ": "ChuongMy",
    "Quốc Oai": "QuocOai",
    "Thạch Thất": "ThachThat",
    "Sơn Tây": "SonTay",
}

# Path of the observation table on the feed.
FEED_IMAGES_PATH = "/api/cloudinary/images"
