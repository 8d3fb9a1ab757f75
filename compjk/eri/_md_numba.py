from __future__ import annotations

"""Numba McMurchie-Davidson kernels for Cartesian Gaussian integrals.

All kernels are compiled with `nogil=True`: the JK builders drive them from a
thread pool and rely on the GIL being released inside integral evaluation.

Two-electron integrals use the Hermite form

    (ab|cd) = 2 pi^(5/2) / (p q sqrt(p+q))
              * sum_{tuv} E^{ab}_{tuv} sum_{tau nu phi} (-1)^{tau+nu+phi} E^{cd}_{tau nu phi}
              * R_{t+tau, u+nu, v+phi}(pq/(p+q), P-Q)

Three- and two-center integrals reuse the four-center kernel with an s-type
unit function (exponent 0, coefficient 1) in the empty slots.
"""

import math

import numpy as np

import numba as nb  # type: ignore

_ERI_PREFAC = 2.0 * math.pi ** 2.5


@nb.njit(cache=True, nogil=True)
def _ncart(l: int) -> int:
    return (l + 1) * (l + 2) // 2


@nb.njit(cache=True, nogil=True)
def _boys_f0(T: float) -> float:
    if T < 1e-12:
        return 1.0 - (T / 3.0) + (T * T / 10.0)
    return 0.5 * math.sqrt(math.pi / T) * math.erf(math.sqrt(T))


@nb.njit(cache=True, nogil=True)
def boys_fm_list(T: float, m_max: int) -> np.ndarray:
    """[F_0(T), ..., F_{m_max}(T)] via series + downward recursion (T < 5) or upward recursion."""

    out = np.empty((m_max + 1,), dtype=np.float64)
    if m_max == 0:
        out[0] = _boys_f0(T)
        return out
    e = math.exp(-T)
    if T < 5.0:
        term = 1.0
        fm = 0.0
        for k in range(120):
            fm += term / float(2 * m_max + 2 * k + 1)
            term *= -T / float(k + 1)
        out[m_max] = fm
        for m in range(m_max, 0, -1):
            out[m - 1] = (2.0 * T * out[m] + e) / float(2 * m - 1)
        return out
    out[0] = _boys_f0(T)
    for m in range(1, m_max + 1):
        out[m] = (float(2 * m - 1) * out[m - 1] - e) / (2.0 * T)
    return out


@nb.njit(cache=True, nogil=True)
def hermite_e_table(la: int, lb: int, a: float, b: float, Ax: float, Bx: float) -> np.ndarray:
    """1D Hermite expansion coefficients E[i, j, t] for i <= la, j <= lb, t <= la + lb."""

    p = a + b
    inv_p = 1.0 / p
    mu = a * b * inv_p
    Px = (a * Ax + b * Bx) * inv_p
    PA = Px - Ax
    PB = Px - Bx
    AB = Ax - Bx
    half_inv_p = 0.5 * inv_p

    E = np.zeros((la + 1, lb + 1, la + lb + 1), dtype=np.float64)
    E[0, 0, 0] = math.exp(-mu * AB * AB)

    for i in range(la):
        for t in range(i + 2):
            val = PA * E[i, 0, t]
            if t > 0:
                val += half_inv_p * E[i, 0, t - 1]
            if t + 1 <= i:
                val += float(t + 1) * E[i, 0, t + 1]
            E[i + 1, 0, t] = val

    for i in range(la + 1):
        for j in range(lb):
            for t in range(i + j + 2):
                val = PB * E[i, j, t]
                if t > 0:
                    val += half_inv_p * E[i, j, t - 1]
                if t + 1 <= i + j:
                    val += float(t + 1) * E[i, j, t + 1]
                E[i, j + 1, t] = val
    return E


@nb.njit(cache=True, nogil=True)
def overlap_1d_table(la: int, lb: int, a: float, b: float, Ax: float, Bx: float) -> np.ndarray:
    """1D Obara-Saika overlap table S[i, j] for i <= la, j <= lb."""

    p = a + b
    inv_p = 1.0 / p
    mu = a * b * inv_p
    Px = (a * Ax + b * Bx) * inv_p
    PA = Px - Ax
    PB = Px - Bx
    AB = Ax - Bx
    half_inv_p = 0.5 * inv_p

    S = np.zeros((la + 1, lb + 1), dtype=np.float64)
    S[0, 0] = math.sqrt(math.pi * inv_p) * math.exp(-mu * AB * AB)
    for j in range(lb):
        S[0, j + 1] = PB * S[0, j]
        if j > 0:
            S[0, j + 1] += float(j) * half_inv_p * S[0, j - 1]
    for i in range(la):
        S[i + 1, 0] = PA * S[i, 0]
        if i > 0:
            S[i + 1, 0] += float(i) * half_inv_p * S[i - 1, 0]
        for j in range(lb):
            S[i + 1, j + 1] = PA * S[i, j + 1] + float(j + 1) * half_inv_p * S[i, j]
            if i > 0:
                S[i + 1, j + 1] += float(i) * half_inv_p * S[i - 1, j + 1]
    return S


@nb.njit(cache=True, nogil=True)
def r_tensor(alpha: float, X: float, Y: float, Z: float, nmax: int) -> np.ndarray:
    """Hermite Coulomb integrals R^0_{tuv}(alpha, (X, Y, Z)) for t + u + v <= nmax."""

    R = np.zeros((nmax + 1, nmax + 1, nmax + 1, nmax + 1), dtype=np.float64)
    F = boys_fm_list(alpha * (X * X + Y * Y + Z * Z), nmax)
    fac = 1.0
    for n in range(nmax + 1):
        R[n, 0, 0, 0] = fac * F[n]
        fac *= -2.0 * alpha

    for n in range(nmax - 1, -1, -1):
        top = nmax - n
        for t in range(top + 1):
            for u in range(top - t + 1):
                for v in range(top - t - u + 1):
                    if t > 0:
                        val = X * R[n + 1, t - 1, u, v]
                        if t > 1:
                            val += float(t - 1) * R[n + 1, t - 2, u, v]
                    elif u > 0:
                        val = Y * R[n + 1, t, u - 1, v]
                        if u > 1:
                            val += float(u - 1) * R[n + 1, t, u - 2, v]
                    elif v > 0:
                        val = Z * R[n + 1, t, u, v - 1]
                        if v > 1:
                            val += float(v - 1) * R[n + 1, t, u, v - 2]
                    else:
                        continue
                    R[n, t, u, v] = val
    return R[0]


@nb.njit(cache=True, nogil=True)
def eri_tile(
    la: int,
    lb: int,
    lc: int,
    ld: int,
    cA: np.ndarray,
    cB: np.ndarray,
    cC: np.ndarray,
    cD: np.ndarray,
    expA: np.ndarray,
    coefA: np.ndarray,
    expB: np.ndarray,
    coefB: np.ndarray,
    expC: np.ndarray,
    coefC: np.ndarray,
    expD: np.ndarray,
    coefD: np.ndarray,
    comp_start: np.ndarray,
    comp_lx: np.ndarray,
    comp_ly: np.ndarray,
    comp_lz: np.ndarray,
) -> np.ndarray:
    """Contracted Cartesian ERI tile (ab|cd) with shape (nA, nB, nC, nD)."""

    nA = _ncart(la)
    nB = _ncart(lb)
    nC = _ncart(lc)
    nD = _ncart(ld)
    offA = comp_start[la]
    offB = comp_start[lb]
    offC = comp_start[lc]
    offD = comp_start[ld]
    Lab = la + lb
    L = Lab + lc + ld

    out = np.zeros((nA, nB, nC, nD), dtype=np.float64)
    W = np.empty((nC * nD, Lab + 1, Lab + 1, Lab + 1), dtype=np.float64)

    for ia in range(expA.shape[0]):
        a = expA[ia]
        for ib in range(expB.shape[0]):
            b = expB[ib]
            p = a + b
            Px = (a * cA[0] + b * cB[0]) / p
            Py = (a * cA[1] + b * cB[1]) / p
            Pz = (a * cA[2] + b * cB[2]) / p
            Ex = hermite_e_table(la, lb, a, b, cA[0], cB[0])
            Ey = hermite_e_table(la, lb, a, b, cA[1], cB[1])
            Ez = hermite_e_table(la, lb, a, b, cA[2], cB[2])
            cab = coefA[ia] * coefB[ib]

            for ic in range(expC.shape[0]):
                c = expC[ic]
                for id_ in range(expD.shape[0]):
                    d = expD[id_]
                    q = c + d
                    Qx = (c * cC[0] + d * cD[0]) / q
                    Qy = (c * cC[1] + d * cD[1]) / q
                    Qz = (c * cC[2] + d * cD[2]) / q
                    Fx = hermite_e_table(lc, ld, c, d, cC[0], cD[0])
                    Fy = hermite_e_table(lc, ld, c, d, cC[1], cD[1])
                    Fz = hermite_e_table(lc, ld, c, d, cC[2], cD[2])

                    alpha = p * q / (p + q)
                    R = r_tensor(alpha, Px - Qx, Py - Qy, Pz - Qz, L)
                    pref = _ERI_PREFAC / (p * q * math.sqrt(p + q)) * cab * coefC[ic] * coefD[id_]

                    # ket half: W[kl, t, u, v] = sum (-1)^(tau+nu+phi) E^cd R[t+tau, u+nu, v+phi]
                    W[:] = 0.0
                    for k in range(nC):
                        kx = comp_lx[offC + k]
                        ky = comp_ly[offC + k]
                        kz = comp_lz[offC + k]
                        for l in range(nD):
                            lx = comp_lx[offD + l]
                            ly = comp_ly[offD + l]
                            lz = comp_lz[offD + l]
                            kl = k * nD + l
                            for tau in range(kx + lx + 1):
                                ex = Fx[kx, lx, tau]
                                if ex == 0.0:
                                    continue
                                for nu in range(ky + ly + 1):
                                    exy = ex * Fy[ky, ly, nu]
                                    if exy == 0.0:
                                        continue
                                    for phi in range(kz + lz + 1):
                                        e = exy * Fz[kz, lz, phi]
                                        if e == 0.0:
                                            continue
                                        if (tau + nu + phi) & 1:
                                            e = -e
                                        for t in range(Lab + 1):
                                            for u in range(Lab + 1 - t):
                                                for v in range(Lab + 1 - t - u):
                                                    W[kl, t, u, v] += e * R[t + tau, u + nu, v + phi]

                    for i in range(nA):
                        ix = comp_lx[offA + i]
                        iy = comp_ly[offA + i]
                        iz = comp_lz[offA + i]
                        for j in range(nB):
                            jx = comp_lx[offB + j]
                            jy = comp_ly[offB + j]
                            jz = comp_lz[offB + j]
                            for t in range(ix + jx + 1):
                                ex = Ex[ix, jx, t]
                                if ex == 0.0:
                                    continue
                                for u in range(iy + jy + 1):
                                    exy = ex * Ey[iy, jy, u]
                                    if exy == 0.0:
                                        continue
                                    for v in range(iz + jz + 1):
                                        e = pref * exy * Ez[iz, jz, v]
                                        if e == 0.0:
                                            continue
                                        for k in range(nC):
                                            for l in range(nD):
                                                out[i, j, k, l] += e * W[k * nD + l, t, u, v]
    return out


@nb.njit(cache=True, nogil=True)
def eri3c_tile(
    lP: int,
    lm: int,
    ln: int,
    cP: np.ndarray,
    cm: np.ndarray,
    cn: np.ndarray,
    expP: np.ndarray,
    coefP: np.ndarray,
    expm: np.ndarray,
    coefm: np.ndarray,
    expn: np.ndarray,
    coefn: np.ndarray,
    comp_start: np.ndarray,
    comp_lx: np.ndarray,
    comp_ly: np.ndarray,
    comp_lz: np.ndarray,
) -> np.ndarray:
    """Three-center tile (P|mn) with shape (nP, nm, nn)."""

    unit_exp = np.zeros((1,), dtype=np.float64)
    unit_coef = np.ones((1,), dtype=np.float64)
    tile = eri_tile(
        lP, 0, lm, ln, cP, cP, cm, cn,
        expP, coefP, unit_exp, unit_coef, expm, coefm, expn, coefn,
        comp_start, comp_lx, comp_ly, comp_lz,
    )
    return tile[:, 0, :, :].copy()


@nb.njit(cache=True, nogil=True)
def eri2c_tile(
    lP: int,
    lQ: int,
    cP: np.ndarray,
    cQ: np.ndarray,
    expP: np.ndarray,
    coefP: np.ndarray,
    expQ: np.ndarray,
    coefQ: np.ndarray,
    comp_start: np.ndarray,
    comp_lx: np.ndarray,
    comp_ly: np.ndarray,
    comp_lz: np.ndarray,
) -> np.ndarray:
    """Two-center Coulomb tile (P|Q) with shape (nP, nQ)."""

    unit_exp = np.zeros((1,), dtype=np.float64)
    unit_coef = np.ones((1,), dtype=np.float64)
    tile = eri_tile(
        lP, 0, lQ, 0, cP, cP, cQ, cQ,
        expP, coefP, unit_exp, unit_coef, expQ, coefQ, unit_exp, unit_coef,
        comp_start, comp_lx, comp_ly, comp_lz,
    )
    return tile[:, 0, :, 0].copy()


@nb.njit(cache=True, nogil=True)
def schwarz_pair_values(
    shell_cxyz: np.ndarray,
    shell_prim_start: np.ndarray,
    shell_nprim: np.ndarray,
    shell_l: np.ndarray,
    prim_exp: np.ndarray,
    prim_coef: np.ndarray,
    comp_start: np.ndarray,
    comp_lx: np.ndarray,
    comp_ly: np.ndarray,
    comp_lz: np.ndarray,
) -> np.ndarray:
    """Symmetric table max_{m in M, n in N} |(mn|mn)| over all shell pairs (M, N)."""

    nsh = shell_l.shape[0]
    out = np.zeros((nsh, nsh), dtype=np.float64)
    for M in range(nsh):
        sM = shell_prim_start[M]
        eM = prim_exp[sM : sM + shell_nprim[M]]
        cM = prim_coef[sM : sM + shell_nprim[M]]
        for N in range(M + 1):
            sN = shell_prim_start[N]
            eN = prim_exp[sN : sN + shell_nprim[N]]
            cN = prim_coef[sN : sN + shell_nprim[N]]
            tile = eri_tile(
                shell_l[M], shell_l[N], shell_l[M], shell_l[N],
                shell_cxyz[M], shell_cxyz[N], shell_cxyz[M], shell_cxyz[N],
                eM, cM, eN, cN, eM, cM, eN, cN,
                comp_start, comp_lx, comp_ly, comp_lz,
            )
            vmax = 0.0
            for i in range(tile.shape[0]):
                for j in range(tile.shape[1]):
                    v = abs(tile[i, j, i, j])
                    if v > vmax:
                        vmax = v
            out[M, N] = vmax
            out[N, M] = vmax
    return out


@nb.njit(cache=True)
def eri4c_dense(
    shell_cxyz: np.ndarray,
    shell_prim_start: np.ndarray,
    shell_nprim: np.ndarray,
    shell_l: np.ndarray,
    shell_ao_start: np.ndarray,
    prim_exp: np.ndarray,
    prim_coef: np.ndarray,
    comp_start: np.ndarray,
    comp_lx: np.ndarray,
    comp_ly: np.ndarray,
    comp_lz: np.ndarray,
    nao: int,
) -> np.ndarray:
    """Full (nao, nao, nao, nao) ERI tensor from the unique shell quartets."""

    nsh = shell_l.shape[0]
    out = np.zeros((nao, nao, nao, nao), dtype=np.float64)
    for P in range(nsh):
        for Q in range(P + 1):
            PQ = P * nsh + Q
            for R in range(P + 1):
                for S in range(R + 1):
                    if R * nsh + S > PQ:
                        continue
                    sP = shell_prim_start[P]
                    sQ = shell_prim_start[Q]
                    sR = shell_prim_start[R]
                    sS = shell_prim_start[S]
                    tile = eri_tile(
                        shell_l[P], shell_l[Q], shell_l[R], shell_l[S],
                        shell_cxyz[P], shell_cxyz[Q], shell_cxyz[R], shell_cxyz[S],
                        prim_exp[sP : sP + shell_nprim[P]], prim_coef[sP : sP + shell_nprim[P]],
                        prim_exp[sQ : sQ + shell_nprim[Q]], prim_coef[sQ : sQ + shell_nprim[Q]],
                        prim_exp[sR : sR + shell_nprim[R]], prim_coef[sR : sR + shell_nprim[R]],
                        prim_exp[sS : sS + shell_nprim[S]], prim_coef[sS : sS + shell_nprim[S]],
                        comp_start, comp_lx, comp_ly, comp_lz,
                    )
                    p0 = shell_ao_start[P]
                    q0 = shell_ao_start[Q]
                    r0 = shell_ao_start[R]
                    s0 = shell_ao_start[S]
                    for i in range(tile.shape[0]):
                        p = p0 + i
                        for j in range(tile.shape[1]):
                            q = q0 + j
                            for k in range(tile.shape[2]):
                                r = r0 + k
                                for l in range(tile.shape[3]):
                                    s = s0 + l
                                    v = tile[i, j, k, l]
                                    out[p, q, r, s] = v
                                    out[q, p, r, s] = v
                                    out[p, q, s, r] = v
                                    out[q, p, s, r] = v
                                    out[r, s, p, q] = v
                                    out[s, r, p, q] = v
                                    out[r, s, q, p] = v
                                    out[s, r, q, p] = v
    return out


@nb.njit(cache=True)
def eri3c_dense(
    aux_cxyz: np.ndarray,
    aux_prim_start: np.ndarray,
    aux_nprim: np.ndarray,
    aux_l: np.ndarray,
    aux_ao_start: np.ndarray,
    aux_exp: np.ndarray,
    aux_coef: np.ndarray,
    shell_cxyz: np.ndarray,
    shell_prim_start: np.ndarray,
    shell_nprim: np.ndarray,
    shell_l: np.ndarray,
    shell_ao_start: np.ndarray,
    prim_exp: np.ndarray,
    prim_coef: np.ndarray,
    comp_start: np.ndarray,
    comp_lx: np.ndarray,
    comp_ly: np.ndarray,
    comp_lz: np.ndarray,
    naux: int,
    nao: int,
) -> np.ndarray:
    """Full (naux, nao, nao) three-center tensor (P|mn)."""

    nsh_aux = aux_l.shape[0]
    nsh = shell_l.shape[0]
    out = np.zeros((naux, nao, nao), dtype=np.float64)
    for P in range(nsh_aux):
        sP = aux_prim_start[P]
        eP = aux_exp[sP : sP + aux_nprim[P]]
        cP = aux_coef[sP : sP + aux_nprim[P]]
        for M in range(nsh):
            sM = shell_prim_start[M]
            for N in range(M + 1):
                sN = shell_prim_start[N]
                tile = eri3c_tile(
                    aux_l[P], shell_l[M], shell_l[N],
                    aux_cxyz[P], shell_cxyz[M], shell_cxyz[N],
                    eP, cP,
                    prim_exp[sM : sM + shell_nprim[M]], prim_coef[sM : sM + shell_nprim[M]],
                    prim_exp[sN : sN + shell_nprim[N]], prim_coef[sN : sN + shell_nprim[N]],
                    comp_start, comp_lx, comp_ly, comp_lz,
                )
                a0 = aux_ao_start[P]
                m0 = shell_ao_start[M]
                n0 = shell_ao_start[N]
                for i in range(tile.shape[0]):
                    for j in range(tile.shape[1]):
                        for k in range(tile.shape[2]):
                            out[a0 + i, m0 + j, n0 + k] = tile[i, j, k]
                            out[a0 + i, n0 + k, m0 + j] = tile[i, j, k]
    return out


@nb.njit(cache=True)
def eri2c_dense(
    aux_cxyz: np.ndarray,
    aux_prim_start: np.ndarray,
    aux_nprim: np.ndarray,
    aux_l: np.ndarray,
    aux_ao_start: np.ndarray,
    aux_exp: np.ndarray,
    aux_coef: np.ndarray,
    comp_start: np.ndarray,
    comp_lx: np.ndarray,
    comp_ly: np.ndarray,
    comp_lz: np.ndarray,
    naux: int,
) -> np.ndarray:
    """Two-center Coulomb metric (P|Q), shape (naux, naux)."""

    nsh = aux_l.shape[0]
    out = np.zeros((naux, naux), dtype=np.float64)
    for P in range(nsh):
        sP = aux_prim_start[P]
        for Q in range(P + 1):
            sQ = aux_prim_start[Q]
            tile = eri2c_tile(
                aux_l[P], aux_l[Q], aux_cxyz[P], aux_cxyz[Q],
                aux_exp[sP : sP + aux_nprim[P]], aux_coef[sP : sP + aux_nprim[P]],
                aux_exp[sQ : sQ + aux_nprim[Q]], aux_coef[sQ : sQ + aux_nprim[Q]],
                comp_start, comp_lx, comp_ly, comp_lz,
            )
            p0 = aux_ao_start[P]
            q0 = aux_ao_start[Q]
            for i in range(tile.shape[0]):
                for j in range(tile.shape[1]):
                    out[p0 + i, q0 + j] = tile[i, j]
                    out[q0 + j, p0 + i] = tile[i, j]
    return out


__all__ = [
    "boys_fm_list",
    "eri2c_dense",
    "eri2c_tile",
    "eri3c_dense",
    "eri3c_tile",
    "eri4c_dense",
    "eri_tile",
    "hermite_e_table",
    "overlap_1d_table",
    "r_tensor",
    "schwarz_pair_values",
]
