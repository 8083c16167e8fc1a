"""Tests for the image-serving fallthrough route."""

import base64

import pytest

from media_gateway.services.storage_service import StoredObject

ONE_YEAR = "public, max-age=31536000, stale-while-revalidate=86400"


@pytest.fixture
def photo(store):
    store.objects["images/photo.jpg"] = StoredObject("images/photo.jpg", b"JPEGDATA", "image/jpeg")
    store.objects["icons/logo.svg"] = StoredObject("icons/logo.svg", b"<svg/>", "image/svg+xml")
    return store


class TestTransformOptions:

    def test_origin_url_and_default_format(self, client, transformer, photo):
        client.get("/images/photo.jpg", headers={"Accept": "text/html"})

        image_url, options, accept = transformer.calls[0]
        assert image_url == "https://origin.test/images/photo.jpg"
        assert options == {"format": "jpeg"}
        assert accept == "text/html"

    @pytest.mark.parametrize("accept, expected", [
        ("image/webp,*/*", "webp"),
        ("image/avif", "avif"),
        ("image/avif,image/webp,image/*", "avif"),
        ("text/html", "jpeg"),
        ("*/*", "jpeg"),
    ])
    def test_format_negotiation(self, client, transformer, photo, accept, expected):
        client.get("/images/photo.jpg", headers={"Accept": accept})
        assert transformer.calls[0][1]["format"] == expected

    def test_query_params_are_mapped(self, client, transformer, photo):
        client.get("/images/photo.jpg?width=800&quality=80&utm_source=mail&fit=cover")

        options = transformer.calls[0][1]
        assert options == {"width": 800, "quality": 80, "fit": "cover", "format": "jpeg"}

    def test_query_string_not_forwarded_to_origin(self, client, transformer, photo):
        client.get("/images/photo.jpg?width=100")
        assert transformer.calls[0][0] == "https://origin.test/images/photo.jpg"


class TestResponses:

    def test_success_overwrites_cache_control(self, client, photo):
        response = client.get("/images/photo.jpg")

        assert response.status_code == 200
        assert response.content == b"transformed:JPEGDATA"
        assert response.headers["Content-Type"] == "image/jpeg"
        assert response.headers["Cache-Control"] == ONE_YEAR

    def test_repeated_upstream_headers_are_kept(self, client, transformer, photo):
        transformer.extra_headers = [("Set-Cookie", "a=1; Path=/"), ("Set-Cookie", "b=2; Path=/")]

        response = client.get("/images/photo.jpg")

        assert response.headers.get_list("set-cookie") == ["a=1; Path=/", "b=2; Path=/"]
        assert response.headers.get_list("cache-control") == [ONE_YEAR]

    def test_not_found_is_short_cached(self, client, photo):
        response = client.get("/nonexistent.jpg")

        assert response.status_code == 404
        assert response.text == "Image not found"
        assert response.headers["Cache-Control"] == "public, max-age=60"
        assert response.headers["Cache-Control"] != ONE_YEAR

    def test_svg_not_found(self, client, transformer):
        response = client.get("/nonexistent.svg")

        assert response.status_code == 404
        assert response.headers["Cache-Control"] == "public, max-age=60"
        assert transformer.calls[0][1] is None

    def test_transform_404_is_not_retried(self, client, transformer):
        client.get("/missing.jpg")
        assert len(transformer.calls) == 1


class TestSvgPassthrough:

    def test_svg_skips_transformation(self, client, transformer, photo):
        response = client.get("/icons/logo.svg?width=100", headers={"Accept": "image/webp"})

        assert response.status_code == 200
        assert response.content == b"<svg/>"
        assert response.headers["Cache-Control"] == ONE_YEAR
        assert transformer.calls == [("https://origin.test/icons/logo.svg", None, "image/webp")]

    def test_svg_suffix_is_case_insensitive(self, client, transformer, photo):
        client.get("/icons/LOGO.SVG")
        assert transformer.calls[0][1] is None


class TestOriginFallback:

    def test_transform_error_status_falls_back_to_origin(self, client, transformer, photo):
        transformer.transform_status = 415

        response = client.get("/images/photo.jpg?width=100")

        assert response.status_code == 200
        assert response.content == b"JPEGDATA"
        assert response.headers["Cache-Control"] == ONE_YEAR
        assert len(transformer.calls) == 2
        assert transformer.calls[1][1] is None

    def test_unreachable_transform_falls_back_to_origin(self, client, transformer, photo):
        transformer.transform_unreachable = True

        response = client.get("/images/photo.jpg")

        assert response.status_code == 200
        assert response.content == b"JPEGDATA"

    def test_failed_fallback_is_no_store(self, client, transformer, photo):
        transformer.transform_status = 500
        transformer.origin_status = 503

        response = client.get("/images/photo.jpg")

        assert response.status_code == 503
        assert response.headers["Cache-Control"] == "no-store"
        assert len(transformer.calls) == 2

    def test_unreachable_origin_is_opaque_502(self, client, transformer, photo):
        transformer.transform_unreachable = True
        transformer.origin_unreachable = True

        response = client.get("/images/photo.jpg")

        assert response.status_code == 502
        assert response.text == "Image unavailable"
        assert response.headers["Cache-Control"] == "no-store"

    def test_svg_origin_error_is_no_store(self, client, transformer, photo):
        transformer.origin_status = 500

        response = client.get("/icons/logo.svg")

        assert response.status_code == 500
        assert response.headers["Cache-Control"] == "no-store"
        assert len(transformer.calls) == 1


def test_uploaded_bytes_are_served_unchanged(client, auth_headers):
    payload = bytes(range(256))
    upload = client.post("/upload", headers=auth_headers, json={
        "path": "vectors/roundtrip.svg",
        "contentType": "image/svg+xml",
        "fileBase64": base64.b64encode(payload).decode("ascii"),
    })
    assert upload.status_code == 201

    response = client.get("/vectors/roundtrip.svg")

    assert response.status_code == 200
    assert response.content == payload
    assert response.headers["Content-Type"] == "image/svg+xml"
