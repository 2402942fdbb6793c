# Copyright (c) 2003-2024 by Mike Jarvis
#
# NptCorr is free software: redistribution and use in source and binary forms,
# with or without modification, are permitted provided that the following
# conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice, this
#    list of conditions, and the disclaimer given in the accompanying LICENSE
#    file.
# 2. Redistributions in binary form must reproduce the above copyright notice,
#    this list of conditions, and the disclaimer given in the documentation
#    and/or other materials provided with the distribution.

import numpy as np
import os
import coord
import nptcorr

from test_helper import CaptureLog, assert_raises, timer

@timer
def test_ascii():

    nobj = 500
    rng = np.random.RandomState(8675309)
    x = rng.random_sample(nobj)
    y = rng.random_sample(nobj)
    z = rng.random_sample(nobj)
    ra = rng.random_sample(nobj)
    dec = rng.random_sample(nobj)
    r = rng.random_sample(nobj)
    w = rng.random_sample(nobj)

    # Some elements have w = 0
    use = rng.randint(30, size=nobj).astype(float)
    w[use == 0] = 0

    os.makedirs('data', exist_ok=True)
    file_name = os.path.join('data','test.dat')
    with open(file_name, 'w') as fid:
        # These are intentionally in a different order from the order we parse them.
        fid.write('# ra dec x y w z r\n')
        for i in range(nobj):
            fid.write(('%.8f '*7 + '\n')%(ra[i],dec[i],x[i],y[i],w[i],z[i],r[i]))

    # Check basic input
    config = {
        'x_col' : 3,
        'y_col' : 4,
        'z_col' : 6,
        'w_col' : 5,
    }
    cat1 = nptcorr.Catalog(file_name, config)
    np.testing.assert_almost_equal(cat1.x, x)
    np.testing.assert_almost_equal(cat1.y, y)
    np.testing.assert_almost_equal(cat1.z, z)
    np.testing.assert_almost_equal(cat1.w, w)
    assert cat1.ra is None
    assert cat1.coords == '3d'
    assert cat1.ntot == nobj
    assert cat1.nobj == np.sum(w != 0)
    np.testing.assert_almost_equal(cat1.sumw, np.sum(w))
    np.testing.assert_almost_equal(cat1.pos, np.column_stack([x,y,z]))
    assert cat1.nontrivial_w
    assert cat1.file_name == file_name
    assert repr(cat1) == "nptcorr.Catalog('data/test.dat')"

    # Check using names
    config_names = {
        'x_col' : 'x',
        'y_col' : 'y',
        'w_col' : 'w',
    }
    cat2 = nptcorr.Catalog(file_name, config_names)
    np.testing.assert_almost_equal(cat2.x, x)
    np.testing.assert_almost_equal(cat2.y, y)
    np.testing.assert_almost_equal(cat2.w, w)
    assert cat2.z is None
    assert cat2.coords == 'flat'
    assert cat2.pos.shape == (nobj, 2)

    # Check the different ways of choosing rows
    cat3 = nptcorr.Catalog(file_name, config, first_row=11, last_row=100, every_nth=3)
    np.testing.assert_almost_equal(cat3.x, x[10:100:3])
    np.testing.assert_almost_equal(cat3.w, w[10:100:3])

    # Random files ignore w_col
    cat4 = nptcorr.Catalog(file_name, config, is_rand=True)
    np.testing.assert_almost_equal(cat4.x, x)
    np.testing.assert_array_equal(cat4.w, 1.)
    assert not cat4.nontrivial_w

    # ra, dec need units
    config_radec = {
        'ra_col' : 1,
        'dec_col' : 2,
        'r_col' : 7,
        'ra_units' : 'rad',
        'dec_units' : 'deg',
    }
    cat5 = nptcorr.Catalog(file_name, config_radec)
    np.testing.assert_almost_equal(cat5.ra, ra)
    np.testing.assert_almost_equal(cat5.dec, dec * np.pi/180.)
    np.testing.assert_almost_equal(cat5.r, r)
    assert cat5.coords == '3d'
    del config_radec['r_col']
    cat6 = nptcorr.Catalog(file_name, config_radec)
    assert cat6.coords == 'spherical'
    np.testing.assert_almost_equal(np.sum(cat6.pos**2, axis=1), 1.)
    del config_radec['ra_units']
    with assert_raises(TypeError):
        nptcorr.Catalog(file_name, config_radec)

    # Check errors in the column specifications
    with assert_raises(ValueError):
        nptcorr.Catalog(file_name, x_col=3)
    with assert_raises(ValueError):
        nptcorr.Catalog(file_name, y_col=4)
    with assert_raises(ValueError):
        nptcorr.Catalog(file_name, x_col=3, y_col=4, ra_col=1, dec_col=2)
    with assert_raises(ValueError):
        nptcorr.Catalog(file_name, x_col=3, y_col=4, r_col=7)
    with assert_raises(ValueError):
        nptcorr.Catalog(file_name, ra_col=1, ra_units='rad', dec_units='rad')
    with assert_raises(ValueError):
        nptcorr.Catalog(file_name, dec_col=2, ra_units='rad', dec_units='rad')
    with assert_raises(ValueError):
        nptcorr.Catalog(file_name, ra_col=1, dec_col=2, z_col=6,
                        ra_units='rad', dec_units='rad')
    with assert_raises(ValueError):
        nptcorr.Catalog(file_name, w_col=5)
    with assert_raises(ValueError):
        nptcorr.Catalog(file_name, x_col=3, y_col=40)
    with assert_raises(ValueError):
        nptcorr.Catalog(file_name, x_col='x', y_col='invalid')
    with assert_raises(ValueError):
        nptcorr.Catalog(file_name, config, first_row=0)
    with assert_raises(ValueError):
        nptcorr.Catalog(file_name, config, first_row=10, last_row=5)
    with assert_raises(ValueError):
        nptcorr.Catalog(file_name, config, every_nth=0)
    with assert_raises(OSError):
        nptcorr.Catalog('data/not_a_file.dat', config)
    with assert_raises(TypeError):
        nptcorr.Catalog(file_name, config, x=x)
    with assert_raises(TypeError):
        nptcorr.Catalog(file_name, config, invalid_param=3)


@timer
def test_delimiter():
    # Check the delimiter and comment_marker options
    nobj = 100
    rng = np.random.RandomState(8675309)
    x = rng.random_sample(nobj)
    y = rng.random_sample(nobj)

    os.makedirs('data', exist_ok=True)
    file_name = os.path.join('data','test_delim.dat')
    with open(file_name, 'w') as fid:
        for i in range(nobj):
            fid.write('%.8f,%.8f\n'%(x[i],y[i]))
            if i == 50:
                fid.write('% This file uses commas.\n')

    cat = nptcorr.Catalog(file_name, x_col=1, y_col=2, delimiter=',', comment_marker='%')
    np.testing.assert_almost_equal(cat.x, x)
    np.testing.assert_almost_equal(cat.y, y)


@timer
def test_arrays():
    nobj = 300
    rng = np.random.RandomState(8675309)
    x = rng.random_sample(nobj)
    y = rng.random_sample(nobj)
    z = rng.random_sample(nobj)
    ra = rng.random_sample(nobj) * 24.
    dec = rng.random_sample(nobj) * 180. - 90.
    w = rng.random_sample(nobj) + 0.5

    cat1 = nptcorr.Catalog(x=x, y=y)
    assert cat1.coords == 'flat'
    np.testing.assert_array_equal(cat1.w, 1.)
    np.testing.assert_array_equal(cat1.pos, np.column_stack([x,y]))
    assert cat1.file_name is None
    assert repr(cat1) == "nptcorr.Catalog(ntot=300, coords='flat')"

    cat2 = nptcorr.Catalog(x=x, y=y, z=z, w=w)
    assert cat2.coords == '3d'
    np.testing.assert_array_equal(cat2.w, w)
    np.testing.assert_array_equal(cat2.pos, np.column_stack([x,y,z]))

    cat3 = nptcorr.Catalog(ra=ra, dec=dec, ra_units='hours', dec_units='degrees')
    assert cat3.coords == 'spherical'
    np.testing.assert_almost_equal(cat3.ra, ra * np.pi/12.)
    np.testing.assert_almost_equal(cat3.dec, dec * np.pi/180.)
    for i in range(0, nobj, 37):
        c = coord.CelestialCoord(ra[i] * coord.hours, dec[i] * coord.degrees)
        np.testing.assert_almost_equal(cat3.pos[i], c.get_xyz())

    cat4 = nptcorr.Catalog(ra=ra, dec=dec, r=z, ra_units='hours', dec_units='degrees')
    assert cat4.coords == '3d'
    np.testing.assert_almost_equal(np.sqrt(np.sum(cat4.pos**2, axis=1)), z)

    # A 2-d input array is flattened with a warning.
    with CaptureLog() as cl:
        cat5 = nptcorr.Catalog(x=x.reshape(30,10), y=y.reshape(30,10), logger=cl.logger)
    assert 'not 1-d' in cl.output
    np.testing.assert_array_equal(cat5.x, x)

    # Weights for tuples
    np.testing.assert_almost_equal(cat2.sumw_tuples(1), np.sum(w))
    sumw2 = (np.sum(w)**2 - np.sum(w**2))/2.
    np.testing.assert_almost_equal(cat2.sumw_tuples(2), sumw2)
    assert cat1.sumw_tuples(3) == nobj*(nobj-1)*(nobj-2)//6
    assert cat1.sumw_tuples(0) == 1

    # Errors
    with assert_raises(TypeError):
        nptcorr.Catalog()
    with assert_raises(TypeError):
        nptcorr.Catalog(x=x)
    with assert_raises(TypeError):
        nptcorr.Catalog(y=y)
    with assert_raises(TypeError):
        nptcorr.Catalog(x=x, y=y, ra=ra, dec=dec)
    with assert_raises(TypeError):
        nptcorr.Catalog(x=x, y=y, r=z)
    with assert_raises(TypeError):
        nptcorr.Catalog(ra=ra, ra_units='hours', dec_units='deg')
    with assert_raises(TypeError):
        nptcorr.Catalog(ra=ra, dec=dec, z=z, ra_units='hours', dec_units='deg')
    with assert_raises(TypeError):
        nptcorr.Catalog(ra=ra, dec=dec, ra_units='hours')
    with assert_raises(ValueError):
        nptcorr.Catalog(x=x, y=y[:100])
    with assert_raises(ValueError):
        nptcorr.Catalog(x=x, y=y, w=w[:100])
    with assert_raises(ValueError):
        nptcorr.Catalog(x=x, y=y, w=-w)
    with assert_raises(ValueError):
        nptcorr.Catalog(x=x, y=y, ra_units='invalid')


@timer
def test_nan():
    # Test handling of NaN values (w -> 0)

    nobj = 100
    rng = np.random.RandomState(8675309)
    x = rng.random_sample(nobj)
    y = rng.random_sample(nobj)
    x[[3, 17, 44]] = np.nan
    y[[44, 63]] = np.nan

    with CaptureLog() as cl:
        cat = nptcorr.Catalog(x=x, y=y, logger=cl.logger)
    assert "NaNs found in x column" in cl.output
    assert "NaNs found in y column" in cl.output
    assert "Skipping rows" in cl.output
    assert cat.nobj == nobj - 4
    np.testing.assert_array_equal(np.where(cat.w == 0)[0], [3, 17, 44, 63])
    assert not np.any(np.isnan(cat.pos))

    # The field doesn't include them.
    field = cat.getField(leaf_size=4)
    assert field.ntot == nobj - 4
    assert not np.any(np.isin(field.index, [3, 17, 44, 63]))

    # An empty catalog gives a warning.
    with CaptureLog() as cl:
        cat = nptcorr.Catalog(x=[], y=[], logger=cl.logger)
    assert "has no objects" in cl.output
    assert cat.ntot == 0
    assert cat.getField().root is None


@timer
def test_field_cache():
    nobj = 200
    rng = np.random.RandomState(8675309)
    cat = nptcorr.Catalog(x=rng.random_sample(nobj), y=rng.random_sample(nobj))

    f1 = cat.getField(leaf_size=8)
    f2 = cat.getField(leaf_size=8)
    assert f2 is f1
    assert f1.cat is cat
    f3 = cat.getField(leaf_size=8, split_method='median')
    assert f3 is not f1
    f4 = cat.getField(leaf_size=4)
    assert f4 is not f1

    cat.clear_cache()
    f5 = cat.getField(leaf_size=8)
    assert f5 is not f1
    np.testing.assert_array_equal(f5.index, f1.index)


@timer
def test_list():
    # Test different ways to read in a list of catalog names.
    # This is based on the bug report for Issue #10.

    nobj = 100
    rng = np.random.RandomState(8675309)

    ncats = 3
    x_list = []
    y_list = []
    file_names = []
    os.makedirs('data', exist_ok=True)
    for k in range(ncats):
        x = rng.random_sample(nobj)
        y = rng.random_sample(nobj)
        file_name = os.path.join('data','test_list%d.dat'%k)
        np.savetxt(file_name, np.array([x,y]).T, fmt='%.8f')
        x_list.append(x)
        y_list.append(y)
        file_names.append(file_name)

    list_name = os.path.join('data','test_list_files.txt')
    with open(list_name, 'w') as fid:
        for name in file_names:
            fid.write('%s\n'%name)

    # Start with file_name as a list (the way it comes from a yaml file)
    config = { 'file_name' : file_names, 'x_col' : 1, 'y_col' : 2 }
    cats = nptcorr.read_catalogs(config, 'file_name')
    assert len(cats) == ncats
    for k in range(ncats):
        np.testing.assert_almost_equal(cats[k].x, x_list[k])
        np.testing.assert_almost_equal(cats[k].y, y_list[k])

    # Next file_name as a string (the way it comes from a params file)
    config['file_name'] = ' '.join(file_names)
    cats = nptcorr.read_catalogs(config, 'file_name')
    assert len(cats) == ncats
    for k in range(ncats):
        np.testing.assert_almost_equal(cats[k].x, x_list[k])

    # Use a file list instead.
    del config['file_name']
    config['file_list'] = list_name
    cats = nptcorr.read_catalogs(config, 'file_name', 'file_list')
    assert len(cats) == ncats
    for k in range(ncats):
        np.testing.assert_almost_equal(cats[k].y, y_list[k])
    cats = nptcorr.read_catalogs(config, list_key='file_list')
    assert len(cats) == ncats

    # Nothing to read gives an empty list.
    assert nptcorr.read_catalogs(config, 'rand_file_name', 'rand_file_list') == []

    # Combine them into a single catalog.
    cat = nptcorr.combine_catalogs(cats)
    assert cat.ntot == ncats * nobj
    np.testing.assert_almost_equal(cat.x, np.concatenate(x_list))
    np.testing.assert_almost_equal(cat.y, np.concatenate(y_list))
    assert nptcorr.combine_catalogs(cats[:1]) is cats[0]

    with assert_raises(TypeError):
        nptcorr.read_catalogs(config)
    config['file_name'] = file_names
    with assert_raises(TypeError):
        nptcorr.read_catalogs(config, 'file_name', 'file_list')
    with assert_raises(ValueError):
        nptcorr.combine_catalogs([])
    sph = nptcorr.Catalog(ra=[1.,2.], dec=[0.,0.5], ra_units='rad', dec_units='rad')
    with assert_raises(ValueError):
        nptcorr.combine_catalogs([cats[0], sph])

    # Spherical catalogs keep their coordinates when combined.
    sph2 = nptcorr.combine_catalogs([sph, sph])
    assert sph2.coords == 'spherical'
    np.testing.assert_almost_equal(sph2.ra, [1.,2.,1.,2.])
    np.testing.assert_almost_equal(sph2.pos[2:], sph.pos)


if __name__ == '__main__':
    test_ascii()
    test_delimiter()
    test_arrays()
    test_nan()
    test_field_cache()
    test_list()
