from dataclasses import dataclass, replace


@dataclass(frozen=True)
class QuirkProfile:
    """Behaviour switches for the instructions historical interpreters disagree on.

    shift_uses_vy            8XY6/8XYE shift VY into VX (COSMAC VIP) instead of shifting VX in place.
    load_store_increments_i  FX55/FX65 leave I pointing past the last register transferred.
    logic_resets_vf          8XY1/8XY2/8XY3 clear VF after the logical operation.
    """
    name: str
    shift_uses_vy: bool
    load_store_increments_i: bool
    logic_resets_vf: bool

    @classmethod
    def named(cls, name):
        try:
            return PROFILES[name.lower()]
        except KeyError:
            raise ValueError(
                f"Unknown quirk profile {name!r}, expected one of: {', '.join(sorted(PROFILES))}.") from None

    def with_overrides(self, shift_uses_vy=None, load_store_increments_i=None, logic_resets_vf=None):
        changes = {}
        if shift_uses_vy is not None:
            changes['shift_uses_vy'] = shift_uses_vy
        if load_store_increments_i is not None:
            changes['load_store_increments_i'] = load_store_increments_i
        if logic_resets_vf is not None:
            changes['logic_resets_vf'] = logic_resets_vf
        if not changes:
            return self
        return replace(self, name=f"{self.name}+custom", **changes)


CLASSIC = QuirkProfile("chip8", shift_uses_vy=True, load_store_increments_i=True, logic_resets_vf=True)
SUPERCHIP = QuirkProfile("schip", shift_uses_vy=False, load_store_increments_i=False, logic_resets_vf=False)

PROFILES = {
    CLASSIC.name: CLASSIC,
    SUPERCHIP.name: SUPERCHIP,
}
