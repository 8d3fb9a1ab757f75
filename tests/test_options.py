import pytest


@pytest.mark.parametrize(
    "tag, expected",
    [
        ("DFDIRJ+LINK", ("DFDIRJ", "LINK")),
        ("dfdirj+cosx", ("DFDIRJ", "COSX")),
        ("DFDIRJ", ("DFDIRJ", "NONE")),
        ("DFDIRJ+DFDIRJ", ("DFDIRJ", "NONE")),
        (" DFDIRJ + LinK ", ("DFDIRJ", "LINK")),
    ],
)
def test_split_jk_type(tag, expected):
    from compjk.jk import split_jk_type

    assert split_jk_type(tag) == expected


def test_options_defaults_and_link_cutoff():
    from compjk.jk import CompositeJKOptions

    opts = CompositeJKOptions()
    assert opts.j_type == "DFDIRJ"
    assert opts.k_type == "LINK"
    assert opts.link_cutoff == pytest.approx(opts.ints_tolerance)

    opts = CompositeJKOptions(ints_tolerance=1e-10, link_ints_tolerance=1e-8)
    assert opts.link_cutoff == pytest.approx(1e-8)


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"incfock_full_fock_every": 0}, "INCFOCK_FULL_FOCK_EVERY"),
        ({"incfock_full_fock_every": -3}, "INCFOCK_FULL_FOCK_EVERY"),
        ({"scf_type": "DIRECT+LINK"}, "Invalid Composite J algorithm selected!"),
        ({"scf_type": "DFDIRJ+SNLINK"}, "Invalid Composite K algorithm selected!"),
        ({"screening": "CSAM"}, "SCREENING"),
        ({"cosx_pruning_scheme": "ROBUST"}, "COSX_PRUNING_SCHEME"),
        ({"cosx_spherical_points_final": 111}, "Lebedev"),
        ({"cosx_radial_points_initial": 0}, "COSX_RADIAL_POINTS_INITIAL"),
    ],
)
def test_options_reject_invalid_input(kwargs, message):
    from compjk.jk import CompositeJKOptions

    with pytest.raises(ValueError, match=message):
        CompositeJKOptions(**kwargs)


def test_options_from_mapping_is_case_insensitive():
    from compjk.jk import CompositeJKOptions

    opts = CompositeJKOptions.from_mapping({"SCF_TYPE": "dfdirj+cosx", "Screening": "density", "INCFOCK": True})
    assert opts.scf_type == "DFDIRJ+COSX"
    assert opts.k_type == "COSX"
    assert opts.screening == "DENSITY"
    assert opts.incfock is True

    with pytest.raises(KeyError):
        CompositeJKOptions.from_mapping({"NOT_AN_OPTION": 1})
