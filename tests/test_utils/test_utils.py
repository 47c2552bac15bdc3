"""通用工具函数测试"""

import pytest

from yorder.utils import parse_file_size, to_snake_case


class TestToSnakeCase:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("PlaylistItem", "playlist_item"),
            ("Banner", "banner"),
            ("APIMenu", "api_menu"),
            ("MenuItemV2", "menu_item_v2"),
        ],
    )
    def test_convert(self, name, expected):
        assert to_snake_case(name) == expected


class TestParseFileSize:
    def test_numbers_pass_through(self):
        assert parse_file_size(2048) == 2048
        assert parse_file_size(12.8) == 12

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("100", 100),
            ("100B", 100),
            ("2K", 2 * 1024),
            ("512kb", 512 * 1024),
            ("10MB", 10 * 1024 ** 2),
            ("1.5GB", int(1.5 * 1024 ** 3)),
            (" 3 MB ", 3 * 1024 ** 2),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_file_size(text) == expected

    @pytest.mark.parametrize("text", ["", "KB", "abcMB", "10TB", "1.2.3MB"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_file_size(text)
