import struct

import pytest

from surfelfusion.vertex import (
    VERTEX_SIZE,
    Surfel,
    decode_color,
    encode_color,
    pack_vertices,
    unpack_vertices,
)


def test_vertex_is_three_vec4s():
    data = pack_vertices([Surfel(position=(0.0, 0.0, 0.0))])
    assert len(data) == 48
    assert VERTEX_SIZE == len(data)


def test_encode_white_fills_24_bits():
    assert encode_color(255, 255, 255) == 0xFFFFFF


@pytest.mark.parametrize("rgb", [(0, 0, 0), (12, 200, 7), (255, 0, 128)])
def test_color_round_trip(rgb):
    assert decode_color(encode_color(*rgb)) == rgb


def test_decode_accepts_float_storage():
    value = encode_color(10, 20, 30)
    assert decode_color(float(value)) == (10, 20, 30)


@pytest.mark.parametrize("rgb", [(256, 0, 0), (0, -1, 0)])
def test_encode_rejects_out_of_range(rgb):
    with pytest.raises(ValueError):
        encode_color(*rgb)


@pytest.mark.parametrize("value", [-1, 1 << 24, 3.5])
def test_decode_rejects_invalid(value):
    with pytest.raises(ValueError):
        decode_color(value)


def _surfels():
    return [
        Surfel(
            position=(1.0, -2.0, 3.5),
            confidence=0.75,
            color=encode_color(10, 20, 30),
            init_time=4.0,
            timestamp=9.0,
            normal=(0.0, 0.0, -1.0),
            radius=0.25,
        ),
        Surfel(position=(0.5, 0.5, 0.5), color=encode_color(255, 255, 255)),
    ]


def test_pack_size():
    surfels = _surfels()
    assert len(pack_vertices(surfels)) == len(surfels) * VERTEX_SIZE


def test_pack_unpack_round_trip():
    surfels = _surfels()
    assert unpack_vertices(pack_vertices(surfels)) == surfels


def test_field_offsets():
    surfel = _surfels()[0]
    data = pack_vertices([surfel])
    assert struct.unpack_from("<f", data, 12)[0] == surfel.confidence
    assert struct.unpack_from("<f", data, 16)[0] == float(surfel.color)
    assert struct.unpack_from("<f", data, 44)[0] == surfel.radius


def test_unpack_rejects_partial_vertex():
    with pytest.raises(ValueError):
        unpack_vertices(bytes(VERTEX_SIZE + 4))


def test_surfel_rejects_bad_position():
    with pytest.raises(ValueError):
        Surfel(position=(1.0, 2.0))