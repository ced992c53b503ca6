# https://www.ddc.co.jp/words/archives/20090701114500.html
MM_TO_PT_RATIO = 2.8346


def mm_to_pt(mm: float) -> float:
    return float(mm) * MM_TO_PT_RATIO
